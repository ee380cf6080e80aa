"""
PropertySnap Evidence Command Line Interface.

Provides commands for hashing and integrity-checking photos, reading capture
times, measuring distance to a property, and uploading to object storage.
"""

import argparse
import asyncio
import json
import logging
import sys

from propertysnap.capabilities import LocalFileReader
from propertysnap.config import PROXIMITY_THRESHOLD_METERS, StorageConfig, print_config
from propertysnap.exceptions import ReadError, SignerMisconfigured
from propertysnap.geo import check_proximity, format_distance, calculate_distance
from propertysnap.hashing import hash_photo
from propertysnap.storage import StorageSigner, UploadPipeline
from propertysnap.timestamps import TimestampExtractor, exif_from_image
from propertysnap.verification import verify_integrity


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def cmd_hash(args: argparse.Namespace) -> int:
    """Print the SHA-256 fingerprint of a photo."""
    digest = asyncio.run(hash_photo(args.file))
    if not digest:
        print(f"Error: could not read {args.file}", file=sys.stderr)
        return 1
    print(digest)
    return 0


def cmd_integrity(args: argparse.Namespace) -> int:
    """Re-hash a photo and compare against its recorded hash."""
    result = asyncio.run(verify_integrity(args.file, args.hash))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"{'✅' if result.valid else '❌'} {result.message}")
        print(f"   Original: {result.original_hash or '(none)'}")
        print(f"   Current:  {result.current_hash or '(unreadable)'}")

    return 0 if result.valid else 1


async def _extract_from_file(path: str):
    try:
        data = await LocalFileReader().read(path)
        fields = exif_from_image(data)
    except ReadError as e:
        logging.getLogger(__name__).warning(str(e))
        fields = None
    return await TimestampExtractor().extract(path, exif=fields)


def cmd_timestamp(args: argparse.Namespace) -> int:
    """Read the capture time embedded in a photo."""
    timestamp = asyncio.run(_extract_from_file(args.file))

    if args.json:
        print(json.dumps(timestamp.to_dict(), indent=2))
    elif timestamp.exif_available:
        print(f"Captured: {timestamp.display_text} ({timestamp.source.value})")
    else:
        print(f"⚠️  {timestamp.warning}")
        print(f"   Uploaded: {timestamp.display_text}")

    return 0


def cmd_distance(args: argparse.Namespace) -> int:
    """Distance between a photo location and a property."""
    meters = calculate_distance(args.lat1, args.lon1, args.lat2, args.lon2)
    proximity = check_proximity(args.lat1, args.lon1, args.lat2, args.lon2, args.threshold)

    if args.json:
        print(json.dumps({
            "distance": format_distance(meters),
            "distanceMeters": proximity.distance_meters,
            "near": proximity.near,
            "message": proximity.message,
        }, indent=2))
    else:
        print(format_distance(meters))
        print(proximity.message)

    return 0 if proximity.near else 1


async def _upload_all(paths, token):
    config = StorageConfig.from_env()

    def progress(completed: int, total: int, current: str) -> None:
        if current:
            print(f"[{completed + 1}/{total}] {current}", file=sys.stderr)

    async with UploadPipeline(config, auth_token=token) as pipeline:
        return await pipeline.upload_batch(paths, on_progress=progress)


def cmd_upload(args: argparse.Namespace) -> int:
    """Upload photos, falling back to local URIs on failure."""
    results = asyncio.run(_upload_all(args.files, args.token))

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        for original, stored in zip(args.files, results):
            if stored.is_remote:
                print(f"☁️  {original} -> {stored.uri}")
            else:
                print(f"💾 {original} (local: {stored.error})")

    return 0 if all(r.is_remote for r in results) else 1


def cmd_presign(args: argparse.Namespace) -> int:
    """Print a presigned PUT URL for an object key."""
    signer = StorageSigner(StorageConfig.from_env())
    try:
        print(signer.presign_put(args.key, expires_in=args.ttl))
        return 0
    except (SignerMisconfigured, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    print_config()
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='propertysnap',
        description='PropertySnap Evidence CLI - Photo integrity for property inspections'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # hash command
    p_hash = subparsers.add_parser('hash', help='Print the SHA-256 of a photo')
    p_hash.add_argument('file', help='Photo path or file:// URI')

    # integrity command
    p_integrity = subparsers.add_parser('integrity', help='Check a photo against its recorded hash')
    p_integrity.add_argument('file', help='Photo path or file:// URI')
    p_integrity.add_argument('hash', help='Hash recorded at capture')
    p_integrity.add_argument('--json', action='store_true', help='Output as JSON')

    # timestamp command
    p_ts = subparsers.add_parser('timestamp', help='Read the capture time embedded in a photo')
    p_ts.add_argument('file', help='Photo path or file:// URI')
    p_ts.add_argument('--json', action='store_true', help='Output as JSON')

    # distance command
    p_dist = subparsers.add_parser('distance', help='Distance from a photo to a property')
    p_dist.add_argument('lat1', type=float, help='Photo latitude')
    p_dist.add_argument('lon1', type=float, help='Photo longitude')
    p_dist.add_argument('lat2', type=float, help='Property latitude')
    p_dist.add_argument('lon2', type=float, help='Property longitude')
    p_dist.add_argument('--threshold', type=float, default=PROXIMITY_THRESHOLD_METERS,
                        help='Proximity threshold in meters')
    p_dist.add_argument('--json', action='store_true', help='Output as JSON')

    # upload command
    p_upload = subparsers.add_parser('upload', help='Upload photos to object storage')
    p_upload.add_argument('files', nargs='+', help='Photo paths or file:// URIs')
    p_upload.add_argument('--token', help='Bearer token for the backend upload endpoint')
    p_upload.add_argument('--json', action='store_true', help='Output as JSON')

    # presign command
    p_presign = subparsers.add_parser('presign', help='Create a presigned PUT URL')
    p_presign.add_argument('key', help='Object key (e.g. photos/IMG_0042.jpg)')
    p_presign.add_argument('--ttl', type=int, default=None, help='Validity in seconds')

    # config command
    subparsers.add_parser('config', help='Show configuration')

    args = parser.parse_args()

    setup_logging(args.verbose if hasattr(args, 'verbose') else False)

    commands = {
        'hash': cmd_hash,
        'integrity': cmd_integrity,
        'timestamp': cmd_timestamp,
        'distance': cmd_distance,
        'upload': cmd_upload,
        'presign': cmd_presign,
        'config': cmd_config,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == '__main__':
    sys.exit(main())
