from setuptools import setup, find_packages
setup(
    name="location_filter",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "pydantic",
        "httpx",
        "requests",
        "uvicorn",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'location_filter=location_filter.__main__:_safe_main'
        ]
    }
)
