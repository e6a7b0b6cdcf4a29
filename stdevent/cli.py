# -*- coding: utf-8 -*-
"""
命令行接口
"""

import argparse
import logging
from pathlib import Path
import sys

from stdevent import __version__
from stdevent.core.config import Configuration
from stdevent.core.context import ConversionContext
from stdevent.core.exceptions import ConfigurationError, UnknownDetectorTypeError
from stdevent.core.model import RawEvent, events_to_dataframe
from stdevent.formats import list_converters


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stdevent-convert",
        description="stdevent - 原始数据块到标准事件的转换工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  # 转换若干原始数据块（每个文件一个事件）
  stdevent-convert raw/evt_*.bin --config ad9249.conf --section Converter.ad9249

  # 导出像素表
  stdevent-convert raw/evt_*.bin --output pixels.csv

  # 只写出原始波形（诊断模式）
  stdevent-convert raw/evt_*.bin --dump-waveforms waveforms.txt
        """,
    )
    parser.add_argument("files", nargs="*", help="原始数据块文件，每个文件一个事件")
    parser.add_argument("--config", type=str, help="配置文件（.json 或 .conf/.ini）")
    parser.add_argument("--section", type=str, help="配置文件中的 section 名")
    parser.add_argument(
        "--detector", type=str, default="CaribouAD9249Event", help="探测器类型名称（默认: CaribouAD9249Event）"
    )
    parser.add_argument("--output", type=str, help="像素表输出路径（CSV）")
    parser.add_argument("--dump-waveforms", type=str, help="把原始波形追加写入该文件（不产生标准事件）")
    parser.add_argument("--list", action="store_true", help="列出已注册的转换器")
    parser.add_argument("--progress", action="store_true", help="显示进度条")
    parser.add_argument("--verbose", action="store_true", help="显示详细信息")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None):
    """主命令行入口"""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.list:
        for name in list_converters():
            print(name)
        return 0

    if not args.files:
        print("错误: 至少需要一个原始数据块文件（除非使用 --list）", file=sys.stderr)
        return 2

    try:
        config = Configuration.from_file(args.config, args.section) if args.config else Configuration()
        if args.dump_waveforms:
            config = config.with_overrides({"waveform_filename": args.dump_waveforms})

        ctx = ConversionContext(config=config)
        raw_events = [
            RawEvent(event_number=i, detector_type=args.detector, blocks=(Path(path).read_bytes(),))
            for i, path in enumerate(args.files)
        ]
        events = ctx.convert_many(raw_events, show_progress=args.progress)

        print(f"转换事件数: {ctx.n_converted}, 丢弃事件数: {ctx.n_dropped}")
        if args.verbose:
            for event in events:
                n_pixels = sum(plane.num_pixels for plane in event.planes)
                print(f"  事件 {event.event_number}: trigger={event.trigger_n} "
                      f"t={event.time_begin} pixels={n_pixels}")

        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            events_to_dataframe(events).to_csv(output_path, index=False)
            if args.verbose:
                print(f"结果已保存到: {output_path}")

        return 0

    except UnknownDetectorTypeError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 2
    except FileNotFoundError as e:
        print(f"错误: 文件未找到 - {e}", file=sys.stderr)
        return 1
    except ConfigurationError as e:
        where = f" ({e.detector_type}, 事件 {e.event_number})" if e.event_number is not None else ""
        print(f"错误: 配置无效{where} - {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
