import pytest

from compilebox.sandbox.entry import EntryUnitResolver
from compilebox.sandbox.errors import ResolutionError, ResolutionReason


def resolve(source: str) -> str:
    return EntryUnitResolver().resolve(source)


def test_single_public_class():
    assert resolve('public class Hi{public static void main(String[] a){}}') == "Hi"


def test_last_class_before_main_wins():
    source = """
class Helper {
    int twice(int x) { return x * 2; }
}

public class Solution {
    public static void main(String[] args) {
        System.out.println(new Helper().twice(2));
    }
}

class Trailing {}
"""
    assert resolve(source) == "Solution"


def test_non_public_owner_is_accepted():
    assert resolve("class Main {\n  public   static  void main (String[] a) {}\n}") == "Main"


def test_no_entry_point():
    with pytest.raises(ResolutionError) as exc:
        resolve("public class A { void run() {} }")
    assert exc.value.reason == ResolutionReason.NO_ENTRY_POINT


def test_two_entry_points_are_ambiguous():
    source = (
        "class A { public static void main(String[] a) {} }\n"
        "class B { public static void main(String[] b) {} }"
    )
    with pytest.raises(ResolutionError) as exc:
        resolve(source)
    assert exc.value.reason == ResolutionReason.AMBIGUOUS_ENTRY_POINT


def test_entry_point_without_owner():
    with pytest.raises(ResolutionError) as exc:
        resolve("public static void main(String[] a) {} class Late {}")
    assert exc.value.reason == ResolutionReason.NO_OWNING_UNIT


def test_errors_have_distinct_messages():
    messages = {str(ResolutionError(reason)) for reason in ResolutionReason}
    assert len(messages) == len(ResolutionReason)
