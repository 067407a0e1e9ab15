"""
Tests for locating script elements in editor documents.
"""

from chaincodify.core.html import find_scripts, splice


def test_scripts_with_offsets(lower_case_html):
  scripts = find_scripts(lower_case_html)

  assert len(scripts) == 3
  assert [s.attribute("type") for s in scripts] == ["text/javascript", "text/html", "text/html"]
  for script in scripts:
    assert lower_case_html[script.content_start : script.content_end] == script.content
  assert "RED.nodes.registerType('lower-case'" in scripts[0].content
  assert '<div class="form-row">' in scripts[1].content


def test_attribute_value_spans(lower_case_html):
  template = find_scripts(lower_case_html)[1]
  attribute = next(a for a in template.attributes if a.name == "data-template-name")

  assert attribute.value == "lower-case"
  assert lower_case_html[attribute.start : attribute.end] == "lower-case"


def test_unquoted_and_bare_attributes():
  markup = "<p>x</p>\n<script type=text/javascript async>a();</script>"
  script = find_scripts(markup)[0]

  assert script.attribute("type") == "text/javascript"
  assert script.attribute("async") is None
  assert script.content == "a();"


def test_character_references_in_values_are_decoded():
  markup = '<script data-help-name="a&amp;b"></script>'

  assert find_scripts(markup)[0].attribute("data-help-name") == "a&b"


def test_offsets_after_multibyte_text():
  markup = "<p>é ü</p>\n<script>b();</script>"
  script = find_scripts(markup)[0]

  assert markup[script.content_start : script.content_end] == "b();"


def test_splice_applies_back_to_front():
  assert splice("abcdef", [(0, 1, "X"), (4, 6, "YZW")]) == "XbcdYZW"
