"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Sample node sources (the classic ``lower-case`` node and its editor page).
- A throwaway node package on disk for CLI tests.
- Tracer and console isolation between tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add src to path so we can import 'chaincodify' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from chaincodify.core.tracer import reset_tracer  # noqa: E402
from chaincodify.utils.console import reset_console  # noqa: E402

LOWER_CASE_JS = """\
module.exports = function(RED) {
    function LowerCaseNode(config) {
        RED.nodes.createNode(this,config);
        var node = this;
        node.on('input', function(msg) {
            msg.payload = msg.payload.toLowerCase();
            node.send(msg);
        });
    }
    RED.nodes.registerType("lower-case",LowerCaseNode);
}
"""

LOWER_CASE_HTML = """\
<script type="text/javascript">
    RED.nodes.registerType('lower-case',{
        category: 'function',
        color: '#a6bbcf',
        defaults: {
            name: {value:""}
        },
        inputs: 1,
        outputs: 1,
        icon: "file.png",
        label: function() {
            return this.name||"lower-case";
        }
    });
</script>

<script type="text/html" data-template-name="lower-case">
    <div class="form-row">
        <label for="node-input-name"><i class="fa fa-tag"></i> Name</label>
        <input type="text" id="node-input-name" placeholder="Name">
    </div>
</script>

<script type="text/html" data-help-name="lower-case">
    <p>A simple node that converts the message payloads into all lower-case characters</p>
</script>
"""

# Registers no input handler: fails with MissingHandlerError.
SILENT_JS = """\
module.exports = function(RED) {
    function SilentNode(config) {
        RED.nodes.createNode(this, config);
        this.on('close', function(done) {
            done();
        });
    }
    RED.nodes.registerType("silent", SilentNode);
}
"""

SILENT_HTML = """\
<script type="text/javascript">
    RED.nodes.registerType('silent', { category: 'function', label: 'silent' });
</script>
"""


@pytest.fixture(autouse=True)
def isolate_runtime_state():
  """Gives every test a fresh tracer and the default console."""
  reset_tracer()
  yield
  reset_tracer()
  reset_console()


@pytest.fixture
def lower_case_js() -> str:
  return LOWER_CASE_JS


@pytest.fixture
def lower_case_html() -> str:
  return LOWER_CASE_HTML


def write_package(root: Path, nodes: dict, extra_manifest: dict = None) -> Path:
  """
  Writes a node package holding ``nodes`` (node set name -> (js, html)).

  Returns:
      Path: The package directory.
  """
  package = root / "node-red-contrib-sample"
  package.mkdir(parents=True, exist_ok=True)
  declared = {}
  for name, (code, markup) in nodes.items():
    (package / "nodes").mkdir(exist_ok=True)
    (package / "nodes" / f"{name}.js").write_text(code, encoding="utf-8")
    if markup is not None:
      (package / "nodes" / f"{name}.html").write_text(markup, encoding="utf-8")
    declared[name] = f"nodes/{name}.js"

  manifest = {
    "name": "node-red-contrib-sample",
    "version": "1.0.0",
    "dependencies": {"lodash": "^4.17.21"},
    "node-red": {"nodes": declared},
  }
  manifest.update(extra_manifest or {})
  (package / "package.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
  return package


@pytest.fixture
def sample_package(tmp_path) -> Path:
  """A package with the ``lower-case`` node and an example flow."""
  package = write_package(tmp_path / "in", {"lower-case": (LOWER_CASE_JS, LOWER_CASE_HTML)})
  flow = [
    {"id": "n1", "type": "inject", "wires": [["n2"]]},
    {"id": "n2", "type": "lower-case", "name": "", "wires": [[]]},
  ]
  (package / "examples").mkdir()
  (package / "examples" / "flow.json").write_text(json.dumps(flow), encoding="utf-8")
  return package


@pytest.fixture
def mixed_package(tmp_path) -> Path:
  """A package where ``silent`` cannot be converted."""
  return write_package(
    tmp_path / "in",
    {
      "lower-case": (LOWER_CASE_JS, LOWER_CASE_HTML),
      "silent": (SILENT_JS, SILENT_HTML),
    },
  )
