"""
命令行接口测试
"""

import pandas as pd

from stdevent.cli import main
from tests.utils import make_ad9249_block, spike


def _write_events(tmp_path, n=2):
    paths = []
    for i in range(n):
        path = tmp_path / f"evt_{i}.bin"
        path.write_bytes(make_ad9249_block({3: spike(300, 200, 1000)}))
        paths.append(str(path))
    return paths


class TestCli:
    def test_list(self, capsys):
        assert main(["--list"]) == 0
        assert "CaribouAD9249Event" in capsys.readouterr().out

    def test_no_files(self, capsys):
        assert main([]) == 2
        assert "错误" in capsys.readouterr().err

    def test_convert_to_csv(self, tmp_path, capsys):
        output = tmp_path / "out" / "pixels.csv"
        assert main(_write_events(tmp_path) + ["--output", str(output)]) == 0
        assert "转换事件数: 2" in capsys.readouterr().out

        df = pd.read_csv(output)
        assert len(df) == 2
        assert df["x"].tolist() == [1, 1]
        assert df["y"].tolist() == [0, 0]
        assert df["value"].tolist() == [1000.0, 1000.0]
        assert df["trigger_n"].tolist() == [0, 1]

    def test_config_file(self, tmp_path):
        conf = tmp_path / "ad9249.conf"
        conf.write_text("[Converter.ad9249]\nblStart = 100\nblEnd = 50\ncalibration_px10 = 2*x\n", encoding="utf-8")
        output = tmp_path / "pixels.csv"
        args = _write_events(tmp_path, 1) + ["--config", str(conf), "--section", "Converter.ad9249"]
        assert main(args + ["--output", str(output)]) == 0
        assert pd.read_csv(output)["value"].tolist() == [2000.0]

    def test_dump_waveforms(self, tmp_path, capsys):
        dump = tmp_path / "waveforms.txt"
        assert main(_write_events(tmp_path) + ["--dump-waveforms", str(dump)]) == 0
        assert "丢弃事件数: 2" in capsys.readouterr().out
        assert len(dump.read_text(encoding="utf-8").splitlines()) == 32

    def test_unknown_detector(self, tmp_path, capsys):
        assert main(_write_events(tmp_path, 1) + ["--detector", "NoSuchEvent"]) == 2
        assert "NoSuchEvent" in capsys.readouterr().err

    def test_missing_config(self, tmp_path):
        assert main(_write_events(tmp_path, 1) + ["--config", str(tmp_path / "missing.conf")]) == 1

    def test_invalid_config(self, tmp_path, capsys):
        conf = tmp_path / "bad.conf"
        conf.write_text("[A]\nblStart = 10\nblEnd = 50\n", encoding="utf-8")
        assert main(_write_events(tmp_path, 1) + ["--config", str(conf)]) == 1
        assert "(CaribouAD9249Event, 事件 0)" in capsys.readouterr().err
