"""The project's task graph.

Production build is 'default': clean first, then styles, then html,
scripts, images and copy concurrently, then the service worker. html waits
for styles because build:inline blocks may inline the compiled CSS.
"""

import logging

from static_boiler.orchestrator.graph import Task, TaskGraph
from static_boiler.tasks.clean import clean
from static_boiler.tasks.copy import copy
from static_boiler.tasks.html import html
from static_boiler.tasks.images import images
from static_boiler.tasks.scripts import scripts
from static_boiler.tasks.service_worker import copy_sw_scripts_task, generate_service_worker
from static_boiler.tasks.styles import styles

logger = logging.getLogger(__name__)

DEFAULT_TASK = "default"
DEV_TASKS = ("scripts", "styles")


def build_task_graph() -> TaskGraph:
    """Declare every task of the build.

    Returns:
        A validated TaskGraph.

    """
    graph = TaskGraph(
        [
            Task("clean", clean, description="Delete .tmp and the Output Tree"),
            Task("images", images, description="Optimize images"),
            Task("copy", copy, description="Copy root-level static files"),
            Task("styles", styles, description="Compile and minify stylesheets"),
            Task("scripts", scripts, description="Transpile, bundle and minify scripts"),
            Task("html", html, description="Replace asset blocks and minify HTML"),
            Task(
                "copy-sw-scripts",
                copy_sw_scripts_task,
                description="Stage service worker bootstrap scripts",
            ),
            Task(
                "generate-service-worker",
                generate_service_worker,
                deps=("copy-sw-scripts",),
                description="Write the offline-caching service worker",
            ),
            Task(
                DEFAULT_TASK,
                deps=("clean",),
                sequence=(
                    "styles",
                    ("html", "scripts", "images", "copy"),
                    "generate-service-worker",
                ),
                description="Production build",
            ),
        ]
    )
    graph.validate()
    return graph
