from homecuistot.core.text import clean_md, normalize_name, normalize_names

def test_clean_md_headers():
    assert clean_md("# Carbonara") == "Carbonara"
    assert clean_md("## Tomato soup") == "Tomato soup"
    assert clean_md("#   Spaced Title  ") == "Spaced Title"

def test_clean_md_bold():
    assert clean_md("**Pasta** carbonara") == "Pasta carbonara"
    assert clean_md("__Mixed__ bold") == "Mixed bold"
    # Unclosed markers are left alone
    assert clean_md("**Open") == "**Open"

def test_clean_md_bullets_and_mixed():
    assert clean_md("- Omelette") == "Omelette"
    assert clean_md("* Omelette") == "Omelette"
    assert clean_md("- **Bold Item**") == "Bold Item"

def test_clean_md_preservation():
    assert clean_md("half-and-half pancakes") == "half-and-half pancakes"
    assert clean_md("") == ""
    assert clean_md(None) == ""

def test_normalize_name():
    assert normalize_name("  Olive Oil ") == "olive oil"
    assert normalize_name("") == ""
    # No stemming
    assert normalize_name("Tomatoes") != normalize_name("tomato")

def test_normalize_names_dedupes_in_order():
    assert normalize_names(["Egg", "milk", "EGG ", "", "  ", "Milk"]) == ["egg", "milk"]
    assert normalize_names(None) == []
