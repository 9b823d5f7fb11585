import csv

import pytest

from botplugins.hyaku import IMAGE_BASE, image_urls, load_poems, poem_by_number


def _write(path, rows):
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["番号", "歌人", "上の句", "下の句", "上の句ひらがな", "下の句ひらがな"])
        writer.writerows(rows)
    return path


def _rows(count=100):
    return [[str(n), f"poet{n}", f"up{n}", f"low{n}", f"uk{n}", f"lk{n}"]
            for n in range(1, count + 1)]


def test_load_and_lookup(tmp_path):
    poems = load_poems(_write(tmp_path / "h.csv", _rows()))
    assert len(poems) == 100
    p = poem_by_number(poems, 42)
    assert p.number == "42"
    assert p.poet == "poet42"


def test_poem_str_format(tmp_path):
    poems = load_poems(_write(tmp_path / "h.csv", _rows()))
    lines = str(poems[0]).split("\n")
    assert lines[0] == "●番号：1"
    assert lines[1] == "◉歌人：poet1"
    assert lines[2] == "○上の句：up1"
    assert lines[5] == "◎下の句ひらがな：lk1"
    assert lines[6] == ""


def test_wrong_count_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", _rows(99)))


def test_wrong_numbering_rejected(tmp_path):
    rows = _rows()
    rows[3][0] = "7"
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", rows))


def test_wrong_columns_rejected(tmp_path):
    rows = _rows()
    rows[5] = rows[5][:5]
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", rows))


def test_out_of_range(tmp_path):
    poems = load_poems(_write(tmp_path / "h.csv", _rows()))
    with pytest.raises(ValueError):
        poem_by_number(poems, 0)
    with pytest.raises(ValueError):
        poem_by_number(poems, 101)


def test_image_urls_zero_padded():
    jpg, png = image_urls(7)
    assert jpg == IMAGE_BASE + "img/007.jpg"
    assert png == IMAGE_BASE + "img/007.png"