"""
Tests for display text and link/hashtag annotation extraction
"""

from core.annotations import extract_annotations, render_post, scan_hashtags, scan_links, splice_entities, strip_hashtags
from core.models import Annotation, Post, UrlEntity


def entity(text, short, expanded):
    start = text.index(short)
    return UrlEntity(url=short, expanded_url=expanded, display_url=expanded.split("//")[1], start=start, end=start + len(short))


def spans(text, annotations):
    return [(a.kind, text[a.start : a.end], a.target) for a in annotations]


class TestSpliceEntities:
    """Replacing shortened links with their expansion"""

    def test_single_entity(self):
        """A t.co link is replaced and annotated in display coordinates"""
        text = "Read https://t.co/abc now"
        display, annotations = splice_entities(text, [entity(text, "https://t.co/abc", "https://example.com/long/path")])

        assert display == "Read https://example.com/long/path now"
        assert spans(display, annotations) == [
            ("link", "https://example.com/long/path", "https://example.com/long/path")
        ]

    def test_multiple_entities_keep_positions(self):
        """Later entities are spliced first so earlier offsets stay valid"""
        text = "A https://t.co/1 B https://t.co/2 C"
        ents = [
            entity(text, "https://t.co/2", "https://second.example.org/x"),
            entity(text, "https://t.co/1", "https://first.example.org"),
        ]
        display, annotations = splice_entities(text, ents)

        assert display == "A https://first.example.org B https://second.example.org/x C"
        assert [display[a.start : a.end] for a in annotations] == [
            "https://first.example.org",
            "https://second.example.org/x",
        ]

    def test_out_of_range_entity_ignored(self):
        """Entities pointing past the text are skipped"""
        display, annotations = splice_entities("short", [UrlEntity("u", "https://e.com", start=3, end=40)])
        assert display == "short"
        assert annotations == []


class TestExtractAnnotations:
    """Full display text extraction"""

    def test_media_link_removed(self):
        """Leftover t.co links (attached media) are removed and the result trimmed"""
        display, annotations = extract_annotations("Look at this https://t.co/media123")
        assert display == "Look at this"
        assert annotations == []

    def test_html_unescaped(self):
        """HTML entities are unescaped"""
        display, _ = extract_annotations("Tom &amp; Jerry &gt; cats")
        assert display == "Tom & Jerry > cats"

    def test_entity_links_not_duplicated(self):
        """A link known from entities is not annotated twice by the scanner"""
        text = "See https://t.co/xyz"
        display, annotations = extract_annotations(text, [entity(text, "https://t.co/xyz", "https://example.com")])
        assert display == "See https://example.com"
        assert annotations == [Annotation("link", "https://example.com", 4, 23)]

    def test_plain_links_scanned(self):
        """Links typed as plain text are found; trailing punctuation is excluded"""
        display, annotations = extract_annotations("docs at https://example.com/a.")
        assert spans(display, annotations) == [("link", "https://example.com/a", "https://example.com/a")]

    def test_malformed_link_ignored(self):
        """Something that only looks like a link produces no annotation"""
        _, annotations = extract_annotations("broken http://nohost here")
        assert annotations == []

    def test_truncated_url_ellipsis_dropped(self):
        """The trailing ellipsis of a truncated url is dropped"""
        display, annotations = extract_annotations("via https://example.com/very…")
        assert display == "via https://example.com/very"
        assert annotations[0].target == "https://example.com/very"

    def test_hashtags(self):
        """Hashtags are annotated with the tag name as target"""
        display, annotations = extract_annotations("Go #Devils and #NHL_2025!")
        assert spans(display, annotations) == [
            ("hashtag", "#Devils", "Devils"),
            ("hashtag", "#NHL_2025", "NHL_2025"),
        ]

    def test_hashtag_inside_link_ignored(self):
        """A url fragment is not a hashtag"""
        display, annotations = extract_annotations("https://example.com/page#section")
        assert [a.kind for a in annotations] == ["link"]

    def test_html_entity_is_not_hashtag(self):
        """Numeric character references do not produce hashtags"""
        _, annotations = extract_annotations("a &#39;quote&#39;")
        assert annotations == []

    def test_empty_text(self):
        assert extract_annotations("") == ("", [])


class TestRenderPost:
    """Quote permalinks"""

    def test_quote_appended(self):
        """A quote not present in the text is appended after a blank line"""
        post = Post(url="u", text="My take", quote="https://x.com/other/status/9", quote_retweeted=True)
        display, annotations = render_post(post)

        assert display == "My take\n\nhttps://x.com/other/status/9"
        assert spans(display, annotations) == [
            ("link", "https://x.com/other/status/9", "https://x.com/other/status/9")
        ]

    def test_quote_already_present(self):
        """A quote already in the text is not repeated"""
        post = Post(url="u", text="My take https://x.com/other/status/9", quote="https://x.com/other/status/9")
        display, annotations = render_post(post)

        assert display.count("https://x.com/other/status/9") == 1
        assert len(annotations) == 1


class TestScanners:
    def test_scan_links_positions(self):
        text = "a http://a.b c"
        assert scan_links(text) == [Annotation("link", "http://a.b", 2, 12)]

    def test_scan_hashtags_word_boundary(self):
        """Hashtags glued to a word are not hashtags"""
        assert scan_hashtags("abc#def") == []

    def test_strip_hashtags(self):
        """Hashtags are removed from the text and returned as tags"""
        text, tags = strip_hashtags("Big win tonight #Devils #NHL")
        assert text == "Big win tonight"
        assert tags == ["Devils", "NHL"]
