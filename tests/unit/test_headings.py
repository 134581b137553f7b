"""Unit tests for heading context."""
from notes_to_anki.headings import HeadingIndex


class TestHeadingIndex:
    """Test suite for HeadingIndex."""

    def test_from_text(self):
        """Test headings are found with their level and offset."""
        text = "# Main\n\ntext\n## Sub #tag\n   ### Deep ###\n####### not a heading\n"
        index = HeadingIndex.from_text(text)

        assert len(index) == 3
        assert [(h.level, h.text) for h in index.headings] == [(1, "Main"), (2, "Sub"), (3, "Deep")]
        assert index.headings[1].offset == text.index("## Sub")

    def test_context_chain(self):
        """Test the ancestors of a position, outermost first."""
        text = "# Main\n\n## Sub\nQuestion #card\n"
        index = HeadingIndex.from_text(text)
        position = text.index("Question") - 1

        assert index.context(position) == ["Main", "Sub"]

    def test_siblings_are_skipped(self):
        """Test only headings one level up are taken as ancestors."""
        text = "# A\n## B\n## C\nQuestion\n"
        index = HeadingIndex.from_text(text)

        assert index.context(text.index("Question")) == ["A", "C"]

    def test_deep_context(self):
        """Test a three level chain after an unrelated section."""
        text = (
            "# Main Heading\n\n## Sub Heading\ntext\n\n# Another Section\n\n"
            "## Another Sub\n\n### Deep Section\nDeeper context test #card\n"
        )
        index = HeadingIndex.from_text(text)
        position = text.index("Deeper") - 1

        assert index.context(position) == ["Another Section", "Another Sub", "Deep Section"]

    def test_heading_card_starts_one_level_up(self):
        """Test a heading card does not include itself or its siblings."""
        text = "# A\n## B\n## Question #card\nAnswer\n"
        index = HeadingIndex.from_text(text)
        position = text.index("## Question") - 1

        assert index.context(position, own_level=2) == ["A"]

    def test_no_headings(self):
        """Test a position before any heading has no context."""
        index = HeadingIndex.from_text("Question\n# Later\n")
        assert index.context(0) == []

    def test_breadcrumb(self):
        """Test the breadcrumb joins the context and the card text."""
        text = "# Main\n## Sub\nQ\n"
        index = HeadingIndex.from_text(text)

        assert index.breadcrumb("Q", text.index("Q") - 1, None, " > ") == "Main > Sub > Q"
        assert HeadingIndex([]).breadcrumb("Q", 0, None, " > ") == "Q"
