"""Tests for search, filtering, sorting and pagination."""

from archive_mirror.search import filter_posts, search_posts, sort_posts

from conftest import make_catalog, make_post


def _tagged_catalog():
    return make_catalog([
        make_post("a", tags=["A"], archived_at=1),
        make_post("b", tags=["B"], archived_at=2),
        make_post("ab", tags=["A", "B"], archived_at=3),
    ])


def _ids(posts):
    return [p.id for p in posts]


class TestTagFilters:
    def test_include_requires_every_tag(self):
        result = search_posts(_tagged_catalog(), include_tags=["A"])
        assert sorted(_ids(result.items)) == ["a", "ab"]

    def test_include_and_exclude(self):
        result = search_posts(_tagged_catalog(), include_tags=["A"], exclude_tags=["B"])
        assert _ids(result.items) == ["a"]

    def test_include_both(self):
        result = search_posts(_tagged_catalog(), include_tags=["a", " B "])
        assert _ids(result.items) == ["ab"]

    def test_tag_substring(self):
        catalog = make_catalog([
            make_post("p1", tags=["Tileable"]),
            make_post("p2", tags=["Compact"]),
        ])
        assert _ids(search_posts(catalog, tag="TILE").items) == ["p1"]

    def test_empty_filters_mean_no_restriction(self):
        result = search_posts(_tagged_catalog(), query="  ", include_tags=[], exclude_tags=None)
        assert result.total_items == 3


class TestQuery:
    def test_matches_name_or_code(self):
        catalog = make_catalog([
            make_post("p1", name="Fast Sorter", code="IS001"),
            make_post("p2", name="Smelter", code="FA001"),
        ])
        assert _ids(filter_posts(catalog.posts, query="sort")) == ["p1"]
        assert _ids(filter_posts(catalog.posts, query="fa0")) == ["p2"]
        assert filter_posts(catalog.posts, query="zzz") == []

    def test_channel_filter(self):
        catalog = make_catalog([
            make_post("p1", channel_path="channel-a"),
            make_post("p2", channel_path="channel-b"),
        ])
        assert _ids(search_posts(catalog, channel_paths=["CHANNEL-B"]).items) == ["p2"]


class TestSorting:
    def test_default_is_newest_archived(self):
        posts = [make_post("old", archived_at=1), make_post("new", archived_at=5),
                 make_post("mid", archived_at=3)]
        assert _ids(sort_posts(posts)) == ["new", "mid", "old"]

    def test_updated(self):
        posts = [make_post("x", archived_at=10, updated_at=10),
                 make_post("y", archived_at=1, updated_at=50)]
        assert _ids(sort_posts(posts, "updated")) == ["y", "x"]

    def test_name_case_insensitive(self):
        posts = [make_post("1", name="beta"), make_post("2", name="Alpha"), make_post("3", name="gamma")]
        assert _ids(sort_posts(posts, "name")) == ["2", "1", "3"]

    def test_code(self):
        posts = [make_post("1", code="IS010"), make_post("2", code="IS002")]
        assert _ids(sort_posts(posts, "code")) == ["2", "1"]

    def test_stable_for_ties(self):
        posts = [make_post(str(i), archived_at=7) for i in range(5)]
        assert _ids(sort_posts(posts)) == ["0", "1", "2", "3", "4"]

    def test_unknown_sort_falls_back_to_newest(self):
        posts = [make_post("old", archived_at=1), make_post("new", archived_at=2)]
        assert _ids(sort_posts(posts, "bogus")) == ["new", "old"]


class TestPagination:
    def _catalog(self, count):
        return make_catalog([make_post(f"p{i:02d}", archived_at=i) for i in range(count)])

    def test_two_pages(self):
        catalog = self._catalog(25)
        first = search_posts(catalog, page=1, page_size=20)
        second = search_posts(catalog, page=2, page_size=20)
        assert first.total_pages == 2
        assert first.total_items == 25
        assert len(first.items) == 20
        assert len(second.items) == 5
        assert not set(_ids(first.items)) & set(_ids(second.items))

    def test_out_of_range_page_is_empty(self):
        result = search_posts(self._catalog(25), page=9, page_size=20)
        assert result.items == []
        assert result.total_pages == 2

    def test_page_below_one_is_empty(self):
        result = search_posts(self._catalog(5), page=0, page_size=20)
        assert result.items == []

    def test_no_results_still_one_page(self):
        result = search_posts(self._catalog(0))
        assert result.total_pages == 1
        assert result.total_items == 0
        assert result.items == []

    def test_page_size_clamped_to_one(self):
        result = search_posts(self._catalog(3), page=2, page_size=0)
        assert result.total_pages == 3
        assert len(result.items) == 1


class TestChannelCounts:
    def test_counts_cover_every_channel(self):
        catalog = make_catalog([
            make_post("p1", channel_path="channel-a", tags=["x"]),
            make_post("p2", channel_path="channel-a"),
            make_post("p3", channel_path="channel-b"),
        ])
        result = search_posts(catalog, include_tags=["x"])
        assert result.channel_counts == {"channel-a": 1, "channel-b": 0}

    def test_counts_ignore_pagination(self):
        catalog = make_catalog([make_post(f"p{i}", archived_at=i) for i in range(30)])
        result = search_posts(catalog, page=2, page_size=10)
        assert result.channel_counts["channel-a"] == 30
        assert len(result.items) == 10

    def test_catalog_untouched(self):
        catalog = _tagged_catalog()
        before = catalog.posts
        search_posts(catalog, sort="name")
        assert catalog.posts == before
