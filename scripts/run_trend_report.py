#!/usr/bin/env python3
"""Generate an HTML NDVI trend report for a rectangular region.

This script produces a self-contained HTML report with the mean NDVI per
year chart, greening/browning areas, the slope map and the NDVI
composites of the first and last year.

Usage:
    python run_trend_report.py --sensor S2 --start 2018 --end 2023 --output report.html

Example:
    python run_trend_report.py --bounds 88.35 23.05 88.55 23.35 --sensor L8 \
        --start 2014 --end 2023 --project my-ee-project -o santipur_l8.html
"""

from __future__ import annotations

import argparse
import base64
import logging
import math
import shutil
import sys
import tempfile
from datetime import datetime
from pathlib import Path

# Check imports before running
try:
    import ndvitrend as nt
except ImportError:
    print("Error: ndvitrend not installed. Run: pip install ndvitrend")
    sys.exit(1)

from ndvitrend.analysis import interpret_slope
from ndvitrend.earthengine import download_thumbnail


def encode_image_base64(path: Path) -> str:
    """Read image file and return base64 encoded string."""
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode("utf-8")


def format_hectares(area_ha: float) -> str:
    """Format an area for display; NaN renders as ``N/A``."""
    if math.isnan(area_ha):
        return "N/A"
    return f"{area_ha:,.0f} ha"


def render_images(
    result: nt.TrendResult,
    years: tuple[int, int],
    temp_dir: Path,
) -> tuple[str, list[tuple[str, str]]]:
    """Render the chart and, for live results, the map thumbnails.

    Returns:
        The base64 chart PNG and a list of ``(title, base64 PNG)`` maps.
    """
    chart_png = temp_dir / "mean_ndvi.png"
    result.to_png(chart_png)
    chart_b64 = encode_image_base64(chart_png)

    maps: list[tuple[str, str]] = []
    if result.is_live:
        print("  Rendering maps...")
        slope_png = download_thumbnail(result.slope_thumbnail_url(), temp_dir / "slope.png")
        maps.append(("NDVI slope per year", encode_image_base64(slope_png)))
        for year in sorted(set(years)):
            ndvi_png = download_thumbnail(
                result.ndvi_thumbnail_url(year), temp_dir / f"ndvi_{year}.png"
            )
            maps.append((f"NDVI {year}", encode_image_base64(ndvi_png)))
    return chart_b64, maps


def _trend_class(slope: float) -> str:
    if math.isnan(slope):
        return "warning"
    if slope > 0:
        return "success"
    if slope < 0:
        return "danger"
    return "info"


def generate_html_report(
    bounds: tuple[float, float, float, float],
    sensor: str,
    year_start: int,
    year_end: int,
    output_path: Path,
    region_name: str | None = None,
    use_cache: bool = True,
) -> None:
    """Generate HTML trend report for given region.

    Args:
        bounds: ``(west, south, east, north)`` in WGS84 degrees.
        sensor: Sensor name (``"S2"`` or ``"L8"``).
        year_start: First year, inclusive.
        year_end: Last year, inclusive.
        output_path: Path for output HTML file.
        region_name: Optional human-readable region name.
        use_cache: Reuse a cached summary when available.
    """
    west, south, east, north = bounds
    print(f"Generating NDVI trend report for {bounds}...")

    area = nt.region(west, south, east, north)
    name = region_name or f"{west:.2f}–{east:.2f}°E, {south:.2f}–{north:.2f}°N"

    print(f"  Region: {name}")
    print(f"  Sensor: {sensor}")
    print(f"  Years: {year_start}–{year_end}")

    print("  Computing trend on Earth Engine...")
    result = area.ndvi_trend(
        sensor=sensor,
        year_start=year_start,
        year_end=year_end,
        use_cache=use_cache,
    )

    temp_dir = Path(tempfile.mkdtemp())
    try:
        chart_b64, maps = render_images(result, (year_start, year_end), temp_dir)
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    report_time = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    slope = result.regional_slope
    trend_status = interpret_slope(slope).capitalize()
    trend_class = _trend_class(slope)
    slope_text = "N/A" if math.isnan(slope) else f"{slope:+.4f}"

    rows = "".join(
        f"""
                <li>
                    <span class="label">{stat.year} ({stat.image_count} images)</span>
                    <span class="value">{"no data" if math.isnan(stat.mean_ndvi) else f"{stat.mean_ndvi:.3f}"}</span>
                </li>"""
        for stat in result.yearly
    )

    # Build HTML
    html = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>NDVI Trend Report - {name}</title>
    <style>
        * {{ box-sizing: border-box; margin: 0; padding: 0; }}
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 1000px;
            margin: 0 auto;
            padding: 20px;
            background: #f5f5f5;
        }}
        .report {{
            background: white;
            border-radius: 8px;
            box-shadow: 0 2px 10px rgba(0,0,0,0.1);
            overflow: hidden;
        }}
        .header {{
            background: linear-gradient(135deg, #2c5530 0%, #4a7c59 100%);
            color: white;
            padding: 30px;
            text-align: center;
        }}
        .header h1 {{ font-size: 28px; margin-bottom: 10px; }}
        .header .subtitle {{ opacity: 0.9; font-size: 16px; }}
        .section {{
            padding: 25px 30px;
            border-bottom: 1px solid #eee;
        }}
        .section:last-child {{ border-bottom: none; }}
        .section h2 {{
            color: #2c5530;
            font-size: 20px;
            margin-bottom: 15px;
            padding-bottom: 10px;
            border-bottom: 2px solid #e8f5e9;
        }}
        .metrics {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 15px;
            margin: 20px 0;
        }}
        .metric {{
            background: #f8f9fa;
            padding: 15px;
            border-radius: 6px;
            text-align: center;
        }}
        .metric .value {{
            font-size: 28px;
            font-weight: bold;
            color: #2c5530;
        }}
        .metric .label {{
            font-size: 12px;
            color: #666;
            text-transform: uppercase;
        }}
        .status {{
            display: inline-block;
            padding: 8px 16px;
            border-radius: 20px;
            font-weight: 500;
            margin: 10px 0;
        }}
        .status.success {{ background: #d4edda; color: #155724; }}
        .status.info {{ background: #cce5ff; color: #004085; }}
        .status.warning {{ background: #fff3cd; color: #856404; }}
        .status.danger {{ background: #f8d7da; color: #721c24; }}
        .chart {{
            width: 100%;
            max-width: 800px;
            margin: 20px auto;
            display: block;
            border-radius: 4px;
            box-shadow: 0 1px 4px rgba(0,0,0,0.1);
        }}
        .maps {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(280px, 1fr));
            gap: 15px;
        }}
        .maps figure {{ text-align: center; }}
        .maps img {{ width: 100%; border-radius: 4px; }}
        .quality-list {{
            list-style: none;
            padding: 0;
        }}
        .quality-list li {{
            padding: 8px 0;
            border-bottom: 1px solid #eee;
        }}
        .quality-list li:last-child {{ border-bottom: none; }}
        .quality-list .label {{ color: #666; }}
        .quality-list .value {{ float: right; font-weight: 500; }}
        .warning-box {{
            background: #fff3cd;
            border-left: 4px solid #ffc107;
            padding: 12px 15px;
            margin: 15px 0;
            border-radius: 0 4px 4px 0;
        }}
        .footer {{
            text-align: center;
            padding: 20px;
            background: #f8f9fa;
            color: #666;
            font-size: 12px;
        }}
    </style>
</head>
<body>
    <div class="report">
        <div class="header">
            <h1>NDVI Trend Report</h1>
            <div class="subtitle">{name} | {result.metadata.sensor} | {year_start}–{year_end}</div>
        </div>

        <div class="section">
            <h2>Regional Trend</h2>
            <div class="status {trend_class}">{trend_status}</div>
            <div class="metrics">
                <div class="metric">
                    <div class="value">{slope_text}</div>
                    <div class="label">NDVI / year</div>
                </div>
                <div class="metric">
                    <div class="value">{format_hectares(result.positive_area_ha)}</div>
                    <div class="label">Greening Area</div>
                </div>
                <div class="metric">
                    <div class="value">{format_hectares(result.negative_area_ha)}</div>
                    <div class="label">Browning Area</div>
                </div>
                <div class="metric">
                    <div class="value">{result.confidence:.0%}</div>
                    <div class="label">Confidence</div>
                </div>
            </div>
            <img src="data:image/png;base64,{chart_b64}" alt="Mean NDVI per year" class="chart">
        </div>
"""

    if maps:
        figures = "".join(
            f"""
                <figure>
                    <img src="data:image/png;base64,{b64}" alt="{title}">
                    <figcaption>{title}</figcaption>
                </figure>"""
            for title, b64 in maps
        )
        html += f"""
        <div class="section">
            <h2>Maps</h2>
            <div class="maps">{figures}
            </div>
        </div>
"""
    else:
        html += """
        <div class="section">
            <h2>Maps</h2>
            <div class="warning-box">
                Maps not rendered: summary restored from cache. Run with --no-cache.
            </div>
        </div>
"""

    html += f"""
        <div class="section">
            <h2>Yearly Mean NDVI</h2>
            <ul class="quality-list">{rows}
            </ul>
"""

    if result.warnings:
        html += """
            <h3 style="margin-top: 20px; color: #856404;">Warnings</h3>
"""
        for w in result.warnings:
            html += f"""
            <div class="warning-box">{w}</div>
"""

    html += f"""
        </div>

        <div class="footer">
            <p>Generated with ndvitrend v{nt.__version__}</p>
            <p>Report Time: {report_time}</p>
        </div>
    </div>
</body>
</html>
"""

    output_path.write_text(html, encoding="utf-8")
    print(f"\n[OK] Report saved to: {output_path.absolute()}")


def main() -> None:
    """Parse arguments and run the trend report."""
    parser = argparse.ArgumentParser(
        description="Generate an HTML NDVI trend report from Earth Engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_trend_report.py --sensor S2 --start 2018 --end 2023
  python run_trend_report.py --bounds 88.35 23.05 88.55 23.35 --sensor L8 -o l8.html
        """,
    )
    parser.add_argument(
        "--bounds",
        type=float,
        nargs=4,
        metavar=("WEST", "SOUTH", "EAST", "NORTH"),
        default=list(nt.SANTIPUR),
        help="Region bounds in WGS84 degrees (default: Santipur)",
    )
    parser.add_argument(
        "--sensor",
        type=str,
        default="S2",
        choices=["S2", "L8"],
        help="Sensor: S2 (Sentinel-2) or L8 (Landsat 8) (default: S2)",
    )
    parser.add_argument(
        "--start",
        type=int,
        default=2018,
        help="First year, inclusive (default: 2018)",
    )
    parser.add_argument(
        "--end",
        type=int,
        default=2023,
        help="Last year, inclusive (default: 2023)",
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Cloud project registered for Earth Engine",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default="ndvi_trend_report.html",
        help="Output HTML file path (default: ndvi_trend_report.html)",
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Human-readable region name (optional)",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Recompute even if a cached summary exists",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show ndvitrend log messages",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.project:
        nt.configure(project=args.project)

    try:
        generate_html_report(
            bounds=tuple(args.bounds),
            sensor=args.sensor,
            year_start=args.start,
            year_end=args.end,
            output_path=Path(args.output),
            region_name=args.name,
            use_cache=not args.no_cache,
        )
    except nt.NdviTrendError as e:
        print(f"\nError generating report: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
