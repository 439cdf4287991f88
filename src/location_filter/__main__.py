import argparse
import asyncio
import json
import sys

from .config import get_settings
from .geometry.geojson import polygon_feature
from .log import configure_logging


def _cmd_radius(args):
    from .radius.engine import compute

    polygon = compute([args.lng, args.lat], args.km)
    print(json.dumps(polygon_feature(polygon, radiusKm=args.km)))
    return 0


def _cmd_isochrone(args):
    from .isochrone.client import MapboxIsochroneClient
    from .isochrone.engine import IsochroneEngine, IsochroneFailure
    from .map_layer.styles import profile_color

    async def _run():
        client = MapboxIsochroneClient()
        try:
            engine = IsochroneEngine(client=client)
            return await engine.compute([args.lng, args.lat], args.profile, args.minutes)
        finally:
            await client.aclose()

    result = asyncio.run(_run())
    if isinstance(result, IsochroneFailure):
        print(json.dumps({"error": result.to_dict()}))
        return 1
    print(
        json.dumps(
            polygon_feature(
                result,
                profile=args.profile,
                minutes=args.minutes,
                color=profile_color(args.profile),
            )
        )
    )
    return 0


def _cmd_boundaries(args):
    from .boundaries.search import BoundarySearchClient

    client = BoundarySearchClient()
    try:
        items = client.search(args.query, args.lang)
    finally:
        client.close()
    for item in items:
        print(json.dumps(item.to_dict()))
    return 0


def _cmd_geometries(args):
    from .storage import open_store

    store = open_store(args.db)
    try:
        if args.action == "list":
            rows = [g.to_dict() for g in store.list()]
            print(json.dumps({"data": rows, "total": len(rows)}))
        elif args.action == "add":
            geometry = json.loads(args.geometry)
            stored = store.create(args.type, geometry, name=args.name)
            print(json.dumps({"data": stored.to_dict()}))
        else:
            store.delete(args.id)
            print(json.dumps({"success": True}))
    finally:
        store.close()
    return 0


def _cmd_serve(args):
    import uvicorn

    uvicorn.run(
        "location_filter.api.app:app",
        host=args.host,
        port=args.port,
        log_level=(args.log_level or "info").lower(),
    )
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="location_filter",
        description="Spatial location filter tools",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, etc.)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Emit logs as JSON lines",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    radius = sub.add_parser("radius", help="Print a radius circle as GeoJSON")
    radius.add_argument("--lng", type=float, required=True)
    radius.add_argument("--lat", type=float, required=True)
    radius.add_argument("--km", type=float, default=5.0, help="Radius in km (0.1-100)")
    radius.set_defaults(func=_cmd_radius)

    iso = sub.add_parser("isochrone", help="Fetch a travel-time polygon")
    iso.add_argument("--lng", type=float, required=True)
    iso.add_argument("--lat", type=float, required=True)
    iso.add_argument(
        "--profile",
        default="walking",
        choices=["walking", "cycling", "driving", "driving-traffic"],
    )
    iso.add_argument("--minutes", type=int, default=15)
    iso.set_defaults(func=_cmd_isochrone)

    bnd = sub.add_parser("boundaries", help="Search administrative boundaries by name")
    bnd.add_argument("query")
    bnd.add_argument("--lang", default="en")
    bnd.set_defaults(func=_cmd_boundaries)

    geo = sub.add_parser("geometries", help="Manage stored geometries")
    geo.add_argument("--db", default=None, help="SQLite path (defaults to LF_GEOMETRY_DB)")
    geo_sub = geo.add_subparsers(dest="action", required=True)
    geo_sub.add_parser("list")
    add = geo_sub.add_parser("add")
    add.add_argument("--type", required=True, choices=["polygon", "isochrone", "radius"])
    add.add_argument("--geometry", required=True, help="Geometry as JSON")
    add.add_argument("--name", default=None)
    delete = geo_sub.add_parser("delete")
    delete.add_argument("id", type=int)
    geo.set_defaults(func=_cmd_geometries)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=_cmd_serve)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    json_lines = get_settings().log_json if args.log_json is None else args.log_json
    configure_logging(args.log_level, json_lines=json_lines)
    return args.func(args)


def _safe_main():
    try:
        code = main()
    except SystemExit:
        raise
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        raise SystemExit(1)
    sys.exit(code)


if __name__ == "__main__":
    _safe_main()
