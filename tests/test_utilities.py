from bugsmodel import utilities as util


class TestUtilities:
    def test_flatten(self):
        xss = [[1,2,3], [4,5], [6], []]

        assert util.flatten(xss) == [1,2,3,4,5,6]

    def test_unique_stable(self):
        xs = [1,5,4,3,4,2,1]

        assert util.unique_stable(xs) == [1,5,4,3,2]

    def test_index_product(self):
        assert util.index_product(()) == [()]
        assert util.index_product((3,)) == [(1,), (2,), (3,)]
        assert util.index_product((2, 2)) == [(1, 1), (1, 2), (2, 1), (2, 2)]
        assert util.index_product((2, 0)) == []

    def test_indent(self):
        assert util.indent("a\nb", 2) == "  a\n  b"
