import pytest

from aduan.markup import escape_markdown


class TestEscapeMarkdown:
    def test_plain_text_unchanged(self):
        assert escape_markdown("Makmal Sains") == "Makmal Sains"

    def test_html_is_escaped(self):
        text = escape_markdown('<a href="javascript:alert(1)">Makmal</a>')
        assert "<a" not in text
        assert "&lt;a href=&quot;javascript\\:alert\\(1\\)&quot;&gt;Makmal&lt;/a&gt;" == text

    @pytest.mark.parametrize("raw, escaped", [
        ("**tebal**", "\\*\\*tebal\\*\\*"),
        ("[klik](http://x)", "\\[klik\\]\\(http\\://x\\)"),
        ("# Tajuk", "\\# Tajuk"),
        ("$x$", "\\$x\\$"),
        (":fire:", "\\:fire\\:"),
    ])
    def test_markdown_syntax_neutralized(self, raw, escaped):
        assert escape_markdown(raw) == escaped

    def test_escape_sequences_do_not_break_entities(self):
        assert escape_markdown("Bilik #5 & 'A'") == "Bilik \\#5 &amp; &#x27;A&#x27;"

    def test_none_and_empty(self):
        assert escape_markdown(None) == ""
        assert escape_markdown("") == ""
