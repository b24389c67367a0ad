import argparse
import json
import logging
import sys

def setup_logging(level: int = logging.INFO) -> None:
    """
    Configures the standard logging format and level for the command-line interface.

    Args:
        level (int): The logging threshold level.
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def show_info(path: str, with_stats: bool = False, band: int = 0, debug_level: int = 0) -> None:
    """
    Prints the resolved metadata of a GeoTIFF, optionally with the statistics of one band.

    Args:
        path (str): The GeoTIFF to inspect.
        with_stats (bool): Also summarize the band values (nodata excluded).
        band (int): 0-based band used for the statistics.
        debug_level (int): Forwarded to ParseConfig.
    """
    from georaster.config import ParseConfig
    from georaster.exceptions import GeoRasterError
    from georaster.io import load

    try:
        raster = load(path, config=ParseConfig(calc_stats=True, debug_level=debug_level))
    except (FileNotFoundError, GeoRasterError) as e:
        logging.error(f"Cannot read {path}: {e}")
        sys.exit(1)

    report = raster.to_dict()
    if with_stats:
        try:
            report["stats"] = raster.stats(band=band).as_dict()
        except (GeoRasterError, IndexError) as e:
            logging.error(f"Cannot compute statistics: {e}")
            sys.exit(1)

    print(json.dumps(report, indent=2))

def main() -> None:
    """
    Parses command-line arguments and routes execution to the matching subcommand.
    """
    parser = argparse.ArgumentParser(
        prog="georaster",
        description="Inspect georeferenced rasters"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    info_parser = subparsers.add_parser(
        "info",
        help="Prints CRS, bounds, pixel size and band extrema of a GeoTIFF."
    )
    info_parser.add_argument("path", type=str, help="Path to the GeoTIFF.")
    info_parser.add_argument(
        "--stats",
        action="store_true",
        help="Also compute min/max/mean/median/mode of one band."
    )
    info_parser.add_argument(
        "--band",
        type=int,
        default=0,
        help="0-based band used by --stats. Defaults to 0."
    )
    info_parser.add_argument(
        "--debug",
        action="count",
        default=0,
        help="Log resolved metadata; repeat to also log raw geo-keys."
    )

    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    if args.command == "info":
        show_info(args.path, with_stats=args.stats, band=args.band, debug_level=args.debug)

if __name__ == "__main__":
    main()
