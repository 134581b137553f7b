"""Unit tests for the note type definitions."""
from notes_to_anki.note_types import all_models, build_models, model_suffix


class TestNoteTypes:
    """Test suite for the generated note types."""

    def test_model_suffix(self):
        """Test the suffix of every combination."""
        assert model_suffix(False, False) == ""
        assert model_suffix(True, False) == "-source"
        assert model_suffix(False, True) == "-code"
        assert model_suffix(True, True) == "-source-code"

    def test_basic_set(self):
        """Test the four note types without options."""
        models = build_models(False, False)

        assert [m["modelName"] for m in models] == [
            "Obsidian-basic",
            "Obsidian-basic-reversed",
            "Obsidian-cloze",
            "Obsidian-spaced",
        ]
        by_name = {m["modelName"]: m for m in models}
        assert by_name["Obsidian-basic"]["inOrderFields"] == ["Front", "Back"]
        assert len(by_name["Obsidian-basic-reversed"]["cardTemplates"]) == 2
        assert by_name["Obsidian-cloze"]["isCloze"] is True
        assert by_name["Obsidian-cloze"]["inOrderFields"] == ["Text", "Extra"]
        assert by_name["Obsidian-spaced"]["inOrderFields"] == ["Prompt"]
        assert "{{cloze:Text}}" in by_name["Obsidian-cloze"]["cardTemplates"][0]["Front"]

    def test_source_support(self):
        """Test the Source field and its template."""
        for model in build_models(True, False):
            assert model["modelName"].endswith("-source")
            assert model["inOrderFields"][-1] == "Source"
            assert "{{Source}}" in model["cardTemplates"][0]["Back"]

    def test_code_highlight(self):
        """Test code note types load the highlighting assets."""
        models = all_models(False, True)

        assert len(models) == 8
        code_models = [m for m in models if m["modelName"].endswith("-code")]
        assert len(code_models) == 4
        for model in code_models:
            assert "_highlightInit.js" in model["cardTemplates"][0]["Front"]

    def test_all_models_without_code(self):
        """Test only the plain set is created without code highlighting."""
        assert len(all_models(True, False)) == 4
