"""
Documentation renderers for the API catalogue.

Each renderer turns the catalogue into a single HTML page. Renderers are
selected at startup from ``ENABLED_FRONTENDS``; the one named by
``DEFAULT_FRONTEND`` (or the first enabled one) is served at ``/``.
"""

import builtins
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader

from ..config import ViewerSettings
from ..models import DiscoveryEntry

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


class FrontendType(Enum):
    SCALAR = "scalar"
    REDOC = "redoc"

    @classmethod
    def parse(cls, value: str) -> "FrontendType | None":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ApiInfo:
    """An API as presented by a renderer."""

    name: str
    slug: str
    spec_url: str
    description: str | None = None


def spec_url(entry: DiscoveryEntry) -> str:
    """Spec route of one entry, unique per Service even when display names clash."""
    return f"/specs/{quote(entry.namespace, safe='')}/{quote(entry.service_name, safe='')}"


def api_infos(entries: builtins.list[DiscoveryEntry]) -> builtins.list[ApiInfo]:
    return [
        ApiInfo(
            name=entry.name,
            slug=f"api-{index}",
            spec_url=spec_url(entry),
            description=entry.description,
        )
        for index, entry in enumerate(entries)
    ]


def create_template_environment(template_dir: Path | None = None) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        autoescape=True,
    )


class DocRenderer(ABC):
    """Renders the API catalogue as an HTML page."""

    name: str

    def __init__(self, environment: Environment | None = None):
        self.environment = environment or create_template_environment()

    @abstractmethod
    def render_catalogue(self, apis: builtins.list[ApiInfo]) -> str:
        """Render the documentation page for ``apis``."""

    @abstractmethod
    def render_empty_state(self) -> str:
        """Render the page shown when no APIs are published."""


@dataclass(frozen=True)
class ScalarOptions:
    theme: str = "purple"
    layout: str = "modern"
    dark_mode: bool = False
    show_sidebar: bool = True
    expand_all_responses: bool = True
    expand_all_model_sections: bool = False
    hide_download_button: bool = False


class ScalarRenderer(DocRenderer):
    name = FrontendType.SCALAR.value

    def __init__(
        self, options: ScalarOptions | None = None, environment: Environment | None = None
    ):
        super().__init__(environment)
        self.options = options or ScalarOptions()

    def _base_configuration(self) -> builtins.dict:
        return {
            "theme": self.options.theme,
            "layout": self.options.layout,
            "darkMode": self.options.dark_mode,
            "showSidebar": self.options.show_sidebar,
            "hideDownloadButton": self.options.hide_download_button,
            "expandAllResponses": self.options.expand_all_responses,
            "expandAllModelSections": self.options.expand_all_model_sections,
        }

    def render_catalogue(self, apis: builtins.list[ApiInfo]) -> str:
        if not apis:
            return self.render_empty_state()

        configuration = self._base_configuration()
        configuration["sources"] = [
            {"title": api.name, "slug": api.slug, "url": api.spec_url, "default": i == 0}
            for i, api in enumerate(apis)
        ]
        return self.environment.get_template("scalar/main.html").render(
            title="API Documentation", configuration=configuration
        )

    def render_empty_state(self) -> str:
        configuration = self._base_configuration()
        configuration["sources"] = [
            {
                "title": "No APIs Found",
                "content": {
                    "openapi": "3.0.0",
                    "info": {
                        "title": "No APIs Found",
                        "version": "1.0.0",
                        "description": "No APIs are currently available",
                    },
                    "paths": {},
                },
            }
        ]
        return self.environment.get_template("scalar/main.html").render(
            title="No APIs Found", configuration=configuration
        )


@dataclass(frozen=True)
class RedocOptions:
    expand_responses: str = "200,201,400,401,403,404"
    required_props_first: bool = True
    show_api_selector: bool = True


class RedocRenderer(DocRenderer):
    name = FrontendType.REDOC.value

    def __init__(
        self, options: RedocOptions | None = None, environment: Environment | None = None
    ):
        super().__init__(environment)
        self.options = options or RedocOptions()

    def render_catalogue(self, apis: builtins.list[ApiInfo]) -> str:
        if not apis:
            return self.render_empty_state()

        return self.environment.get_template("redoc/main.html").render(
            apis=apis,
            has_multiple_apis=len(apis) > 1,
            show_api_selector=self.options.show_api_selector and len(apis) > 1,
            expand_responses=self.options.expand_responses,
            required_props_first=self.options.required_props_first,
        )

    def render_empty_state(self) -> str:
        return self.environment.get_template("redoc/empty.html").render()


class RendererRegistry:
    """The renderers enabled for this process and the default among them."""

    def __init__(
        self,
        renderers: builtins.dict[str, DocRenderer],
        default: str | None = None,
    ):
        self.renderers = renderers
        if default in renderers:
            self.default_name = default
        else:
            self.default_name = next(iter(renderers), None)

    @classmethod
    def from_settings(cls, settings: ViewerSettings) -> "RendererRegistry":
        environment = create_template_environment()
        renderers: builtins.dict[str, DocRenderer] = {}

        for frontend_name in settings.frontends:
            frontend = FrontendType.parse(frontend_name)
            if frontend is None:
                logger.warning(f"Unknown frontend '{frontend_name}' ignored")
                continue
            renderers[frontend.value] = cls._create(frontend, settings, environment)
            logger.info(f"Enabled frontend: {frontend.value}")

        if not renderers:
            renderers[FrontendType.SCALAR.value] = cls._create(
                FrontendType.SCALAR, settings, environment
            )
            logger.info("Auto-enabled scalar frontend (default)")

        default = settings.default_frontend.lower() if settings.default_frontend else None
        registry = cls(renderers, default)
        logger.info(f"Default frontend: {registry.default_name}")
        return registry

    @staticmethod
    def _create(
        frontend: FrontendType, settings: ViewerSettings, environment: Environment
    ) -> DocRenderer:
        if frontend == FrontendType.REDOC:
            return RedocRenderer(
                RedocOptions(
                    expand_responses=settings.redoc_expand_responses,
                    required_props_first=settings.redoc_required_props_first,
                    show_api_selector=settings.redoc_show_api_selector,
                ),
                environment,
            )
        return ScalarRenderer(
            ScalarOptions(
                theme=settings.scalar_theme,
                layout=settings.scalar_layout,
                dark_mode=settings.scalar_dark_mode,
                show_sidebar=settings.scalar_show_sidebar,
                expand_all_responses=settings.scalar_expand_all_responses,
                expand_all_model_sections=settings.scalar_expand_all_model_sections,
                hide_download_button=settings.scalar_hide_download_button,
            ),
            environment,
        )

    def get(self, name: str) -> DocRenderer | None:
        return self.renderers.get(name)

    @property
    def default(self) -> DocRenderer | None:
        return self.renderers.get(self.default_name) if self.default_name else None
