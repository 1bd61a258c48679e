"""Pydantic configuration models for static-boiler.

Every section has defaults matching the stock project layout, so an empty
(or absent) static-boiler.yaml yields a working configuration.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from static_boiler.core.config.constants import DEFAULT_MAXIMUM_FILE_SIZE


class PathsConfig(BaseModel):
    """Project tree locations, relative to the project root.

    Attributes:
        source: Source Tree root.
        tmp: Temporary Tree root (compiled intermediates, dev-server root).
        dist: Output Tree root.
        keep: Paths relative to the Output Tree that the cleaner must never
            delete.
        cache: Persistent cache directory (image optimization results).

    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(default="app", description="Source Tree root")
    tmp: str = Field(default=".tmp", description="Temporary Tree root")
    dist: str = Field(default="dist", description="Output Tree root")
    keep: list[str] = Field(
        default_factory=lambda: [".git"],
        description="Paths preserved by clean (version-control metadata of deployments)",
    )
    cache: str = Field(default=".cache", description="Persistent cache directory")


class ServerConfig(BaseModel):
    """Development server settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)
    dist_port: int = Field(default=3001, ge=1, le=65535)
    log_prefix: str = Field(default="WSK", description="Prefix for server console messages")
    port_attempts: int = Field(default=10, ge=1)


class StylesConfig(BaseModel):
    """Stylesheet pipeline settings.

    Attributes:
        processors: Post-processors applied in order before minification.
        variables: Predefined values for simple-vars substitution.
        gutter: Default gutter for lost grid declarations.
        sourcemaps: Write .map files next to minified stylesheets.

    """

    model_config = ConfigDict(frozen=True)

    processors: list[Literal["autoprefixer", "lost", "rucksack", "simple-vars"]] = Field(
        default_factory=lambda: ["autoprefixer", "lost", "rucksack", "simple-vars"]
    )
    variables: dict[str, str] = Field(default_factory=dict)
    gutter: str = "30px"
    sourcemaps: bool = True


class ScriptsConfig(BaseModel):
    """Script pipeline settings.

    Attributes:
        entries: Entry scripts, relative to the Source Tree.
        bundle: Name of the concatenated, minified output.
        transpiler: Command reading ES source on stdin and writing the
            transpiled program to stdout. Empty list disables transpilation.
        sourcemaps: Write .map files next to the bundle.

    """

    model_config = ConfigDict(frozen=True)

    entries: list[str] = Field(default_factory=lambda: ["scripts/main.js"])
    bundle: str = "main.min.js"
    transpiler: list[str] = Field(
        default_factory=lambda: ["esbuild", "--target=es2015", "--loader=js"]
    )
    transpiler_timeout: int = Field(default=60, ge=1)
    sourcemaps: bool = True

    @field_validator("entries")
    @classmethod
    def _entries_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one script entry is required")
        return value


class ImagesConfig(BaseModel):
    """Image optimization settings."""

    model_config = ConfigDict(frozen=True)

    progressive: bool = True
    interlaced: bool = True
    cache: bool = Field(default=True, description="Reuse optimized bytes across runs")


class CopyConfig(BaseModel):
    """Root file copy settings.

    Attributes:
        extra_files: Files outside the Source Tree copied into dist root.
            Missing entries are skipped with a warning.

    """

    model_config = ConfigDict(frozen=True)

    extra_files: list[str] = Field(
        default_factory=lambda: ["node_modules/apache-server-configs/dist/.htaccess"]
    )


class ServiceWorkerConfig(BaseModel):
    """Offline-cache generator settings.

    Attributes:
        cache_id: Explicit cache identifier. None falls back to the
            package.json name, then to the built-in default.
        filename: Generated script name at the Output Tree root.
        toolbox: Runtime-caching toolbox script (imported first).
        runtime_caching: Project rules script, relative to the Source Tree.
        static_file_globs: Patterns relative to the Output Tree to precache.
        maximum_file_size: Files larger than this are not precached.

    """

    model_config = ConfigDict(frozen=True)

    cache_id: str | None = None
    filename: str = "service-worker.js"
    toolbox: str = "node_modules/sw-toolbox/sw-toolbox.js"
    runtime_caching: str = "scripts/sw/runtime-caching.js"
    static_file_globs: list[str] = Field(
        default_factory=lambda: [
            "images/**/*",
            "scripts/**/*.js",
            "styles/**/*.css",
            "*.{html,json}",
        ]
    )
    maximum_file_size: int = Field(default=DEFAULT_MAXIMUM_FILE_SIZE, ge=1)


class WatchConfig(BaseModel):
    """File watcher settings."""

    model_config = ConfigDict(frozen=True)

    debounce_ms: int = Field(default=100, ge=0)


class Config(BaseModel):
    """Root static-boiler configuration model."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    paths: PathsConfig = Field(default_factory=PathsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    styles: StylesConfig = Field(default_factory=StylesConfig)
    scripts: ScriptsConfig = Field(default_factory=ScriptsConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    copy_files: CopyConfig = Field(default_factory=CopyConfig, alias="copy")
    service_worker: ServiceWorkerConfig = Field(default_factory=ServiceWorkerConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
