"""Pytest configuration and fixtures for static-boiler tests."""

import io
import json
import logging
from pathlib import Path

import pytest
from PIL import Image
from rich.logging import RichHandler

from static_boiler.core.config import load_config
from static_boiler.tasks.base import BuildContext

INDEX_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>Sample</title>
    <!-- build:css styles/main.min.css -->
    <link rel="stylesheet" href="styles/main.css">
    <!-- endbuild -->
  </head>
  <body class="">
    <!-- Page content -->
    <main>
      <h1>Hello</h1>
      <ul>
        <li>One</li>
        <li>Two</li>
      </ul>
    </main>
    <!-- build:js scripts/main.min.js -->
    <script type="text/javascript" src="scripts/main.js"></script>
    <!-- endbuild -->
  </body>
</html>
"""

MAIN_CSS = """/* Site styles */
$brand: #3f51b5;

.grid {
  lost-column: 1/3;
  user-select: none;
}

.header {
  color: $brand;
  background: rgba(#fff, .5);
}
"""

MAIN_JS = """/*! sample-site v1 */
(function () {
  'use strict';
  var greeting = 'hello';
  console.log(greeting);
})();
"""


def make_png(size: tuple[int, int] = (16, 16), color: str = "red") -> bytes:
    """Small PNG written by Pillow."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, "PNG")
    return buffer.getvalue()


@pytest.fixture(name="make_png")
def make_png_fixture():
    """Factory for small Pillow-written PNGs."""
    return make_png


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop Rich handlers installed by CLI commands after each test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.setLevel(logging.WARNING)


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Scaffold a project with the stock layout.

    Layout:
        app/index.html, app/manifest.json, app/robots.txt, app/.hidden
        app/styles/main.css
        app/scripts/main.js, app/scripts/sw/runtime-caching.js
        app/images/logo.png
        node_modules/sw-toolbox/sw-toolbox.js
        node_modules/apache-server-configs/dist/.htaccess
        package.json (name: sample-site)
        static-boiler.yaml (transpiler disabled)
    """
    root = tmp_path / "site"
    app = root / "app"
    (app / "styles").mkdir(parents=True)
    (app / "scripts" / "sw").mkdir(parents=True)
    (app / "images").mkdir(parents=True)

    (app / "index.html").write_text(INDEX_HTML)
    (app / "manifest.json").write_text('{"name": "Sample"}\n')
    (app / "robots.txt").write_text("User-agent: *\n")
    (app / ".hidden").write_text("dotfile\n")
    (app / "styles" / "main.css").write_text(MAIN_CSS)
    (app / "scripts" / "main.js").write_text(MAIN_JS)
    (app / "scripts" / "sw" / "runtime-caching.js").write_text(
        "toolbox.router.get('/(.*)', toolbox.networkFirst);\n"
    )
    (app / "images" / "logo.png").write_bytes(make_png())

    toolbox = root / "node_modules" / "sw-toolbox" / "sw-toolbox.js"
    toolbox.parent.mkdir(parents=True)
    toolbox.write_text("self.toolbox = {router: {get: function () {}}};\n")
    htaccess = root / "node_modules" / "apache-server-configs" / "dist" / ".htaccess"
    htaccess.parent.mkdir(parents=True)
    htaccess.write_text("Options -MultiViews\n")

    (root / "package.json").write_text(json.dumps({"name": "sample-site"}))
    (root / "static-boiler.yaml").write_text("scripts:\n  transpiler: []\n")
    return root


@pytest.fixture
def ctx(sample_project: Path) -> BuildContext:
    """BuildContext for the sample project, transpiler disabled."""
    return BuildContext.from_project(sample_project, load_config({"scripts": {"transpiler": []}}))
