"""
Command-line interface for Geo Index.

Commands:
- nearest: List the places closest to a coordinate
- radial: List the places within a radius of a coordinate
- download: Fetch a GeoNames dump
- serve: Start the API server
"""
import argparse
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

from geo_index import data_loader, utils
from geo_index.downloader import GeoFileDownloader
from geo_index.geo import InvalidGeometryError, chord_to_km, km_to_chord


def _parse_position(value: str):
    lat, lng = map(float, value.split(','))
    return lat, lng


def _load(args, config):
    """Load config-driven settings shared by the search commands."""
    data_cfg = config.get('data', {})
    path = args.file or data_cfg.get('geonames_file')
    extended = data_cfg.get('extended_format', True)

    if not path or not Path(path).exists():
        print(f"Error: GeoNames file not found: {path}")
        print("Download one first:")
        print(f"  python -m geo_index.cli download --config {args.config}")
        return None

    print(f"Loading places from {path}...")
    try:
        index = data_loader.build_index(path, extended_format=extended)
    except (data_loader.ParserError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return None
    print(f"✓ Indexed {index.count} places")
    return index


def _print_results(hits):
    if not hits:
        print("\nNo places found")
        return

    print()
    for i, (place, chord) in enumerate(hits, 1):
        print(f"{i:>3}. {place}  ({place.latitude:.4f}, {place.longitude:.4f})"
              f"  {chord_to_km(chord):.2f} km")


def cmd_nearest(args, config):
    """List the places closest to a position."""
    try:
        lat, lng = _parse_position(args.position)
    except ValueError:
        print("Error: Position must be in format 'lat,lon'")
        return 1

    index = _load(args, config)
    if index is None:
        return 1

    count = args.count
    if count is None:
        count = config.get('search', {}).get('default_max_results', 10)

    try:
        hits = index.nearest_neighbour_search_with_distance(lat, lng, count)
    except InvalidGeometryError as e:
        print(f"Error: {e}")
        return 1

    _print_results(hits)
    return 0


def cmd_radial(args, config):
    """List the places within a radius of a position."""
    try:
        lat, lng = _parse_position(args.position)
    except ValueError:
        print("Error: Position must be in format 'lat,lon'")
        return 1

    search_cfg = config.get('search', {})
    radius_km = args.radius_km
    if radius_km is None:
        radius_km = search_cfg.get('default_radius_km', 25.0)
    count = args.count
    if count is None:
        count = search_cfg.get('default_max_results', 10)

    index = _load(args, config)
    if index is None:
        return 1

    try:
        hits = index.radial_search_with_distance(
            lat, lng, km_to_chord(radius_km), count
        )
    except InvalidGeometryError as e:
        print(f"Error: {e}")
        return 1

    print(f"Places within {radius_km:g} km of {lat}, {lng}:")
    _print_results(hits)
    return 0


def cmd_download(args, config):
    """Download a GeoNames dump."""
    data_cfg = config.get('data', {})
    name = args.name or data_cfg.get('download_file', 'cities15000.zip')
    target = Path(args.dest or data_cfg.get('download_dir', 'data/geonames'))
    target.mkdir(parents=True, exist_ok=True)

    downloader = GeoFileDownloader(
        base_url=data_cfg.get('base_url', 'https://download.geonames.org/export/dump/'),
        ttl_hours=data_cfg.get('ttl_hours', 24)
    )

    print(f"Downloading {name} to {target}...")
    try:
        files = downloader.download_file(name, target)
    except requests.RequestException as e:
        print(f"Error: Download failed: {e}")
        return 1
    for f in files:
        print(f"✓ {f}")

    return 0


def cmd_serve(args, config):
    """Start the API server."""
    from geo_index import server

    server_cfg = config.get('server', {})
    host = args.host or server_cfg.get('host', '0.0.0.0')
    port = args.port or server_cfg.get('port', 8080)

    print(f"Starting server on {host}:{port}...")
    print(f"API docs: http://{host}:{port}/docs")
    print()
    print("Press Ctrl+C to stop")

    server.run_server(host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Geo Index - Reverse geocoding over GeoNames data',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--config', default='config/default_config.yml',
                        help='Path to configuration file')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # nearest
    nearest_parser = subparsers.add_parser('nearest', help='Closest places to a position')
    nearest_parser.add_argument('--position', required=True,
                                help='Position as "lat,lon"')
    nearest_parser.add_argument('--count', type=int, help='Number of results')
    nearest_parser.add_argument('--file', help='GeoNames file (overrides config)')

    # radial
    radial_parser = subparsers.add_parser('radial', help='Places within a radius')
    radial_parser.add_argument('--position', required=True,
                               help='Position as "lat,lon"')
    radial_parser.add_argument('--radius-km', type=float, help='Search radius in km')
    radial_parser.add_argument('--count', type=int, help='Maximum number of results')
    radial_parser.add_argument('--file', help='GeoNames file (overrides config)')

    # download
    download_parser = subparsers.add_parser('download', help='Download a GeoNames dump')
    download_parser.add_argument('--name', help='File name, e.g. cities15000.zip')
    download_parser.add_argument('--dest', help='Target directory')

    # serve
    serve_parser = subparsers.add_parser('serve', help='Start API server')
    serve_parser.add_argument('--host', help='Server host')
    serve_parser.add_argument('--port', type=int, help='Server port')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = utils.load_config_with_env_vars(utils.load_config(args.config))
    except FileNotFoundError:
        config = {}

    debug = args.debug or config.get('logging', {}).get('debug', False)
    utils.init_logger(debug)

    commands = {
        'nearest': cmd_nearest,
        'radial': cmd_radial,
        'download': cmd_download,
        'serve': cmd_serve,
    }
    return commands[args.command](args, config)


if __name__ == '__main__':
    sys.exit(main())
