import pytest

from pdfrelay.naturalsort import digit_suffix_key, extract_number, sort_by_digit_suffix


def test_uuids_with_digit_suffixes():
    values = [
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_12.pdf",
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_1.pdf",
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_10.pdf",
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_3.pdf",
    ]
    expected = [
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_1.pdf",
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_3.pdf",
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_10.pdf",
        "2521a33d-1fb4-4279-80fe-8a945285b8f4_12.pdf",
    ]
    assert sort_by_digit_suffix(values) == expected


@pytest.mark.parametrize(
    "path, expected",
    [
        ("dir/file_12.pdf", (12, "file_.pdf")),
        ("file.pdf", (-1, "file.pdf")),
        ("/a/b/7.pdf", (7, ".pdf")),
        ("noext12", (-1, "noext12")),
    ],
)
def test_extract_number(path, expected):
    assert extract_number(path) == expected


def test_numbered_paths_come_first():
    result = sort_by_digit_suffix(["b.pdf", "a.pdf", "z_2.pdf", "y_1.pdf"])
    assert result == ["y_1.pdf", "z_2.pdf", "a.pdf", "b.pdf"]


def test_equal_numbers_compare_rest():
    assert digit_suffix_key("b_1.pdf") > digit_suffix_key("a_1.pdf")
    assert sort_by_digit_suffix(["b_1.pdf", "a_1.pdf"]) == ["a_1.pdf", "b_1.pdf"]


def test_sort_does_not_modify_input():
    values = ["x_3.pdf", "x_1.pdf"]
    sort_by_digit_suffix(values)
    assert values == ["x_3.pdf", "x_1.pdf"]