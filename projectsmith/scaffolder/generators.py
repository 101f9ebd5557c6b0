"""Content rules: what goes into each template file.

A rule pairs a predicate over the file's path with a generator.  Rules are
tried in order (specific filenames first, then extensions, then a generic
fallback) and the first match produces the file body.  Generators are
deterministic functions of ``(file path, template)``: project-specific values
only enter through the ``{{...}}`` placeholders they emit, which the resolver
substitutes afterwards.  Every body contains ``{{PROJECT_NAME}}``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

from projectsmith.models import Template
from projectsmith.scaffolder.env_writer import (
    example_value,
    primary_env_filename,
    suggested_variables,
    uses_frontend_conventions,
)
from projectsmith.scaffolder.templates import TemplateRenderer

# ---------------------------------------------------------------------------
# File context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileContext:
    """A template file path plus the template it belongs to."""

    path: PurePosixPath
    template: Template

    @classmethod
    def create(cls, file_path: str, template: Template) -> "FileContext":
        return cls(PurePosixPath(file_path), template)

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix.lower().lstrip(".")

    @property
    def stem(self) -> str:
        return self.path.stem

    @property
    def parent(self) -> str:
        return self.path.parent.name

    @property
    def is_blank(self) -> bool:
        return self.template.id.endswith("-blank")

    @property
    def family(self) -> str:
        """Template family: ``blog``, ``ecommerce``, ``nextjs`` or ``fullstack``."""
        template_id = self.template.id.lower()
        for family in ("blog", "ecommerce", "fullstack"):
            if family in template_id:
                return family
        if "next" in template_id:
            return "nextjs"
        return "generic"

    @property
    def has_auth(self) -> bool:
        return "auth" in self.template.id.lower()

    @property
    def component_name(self) -> str:
        if self.stem in ("page", "layout", "route", "index"):
            segment = _clean_segment(self.parent)
            base = _component_case(segment) if segment and segment != "app" else "Home"
            return base + self.stem.capitalize()
        return _component_case(_clean_segment(self.stem)) or "Component"

    def variable_ids(self) -> set[str]:
        return {v.id for v in self.template.variables}

    def variable_or(self, variable_id: str, fallback: str) -> str:
        """The variable's placeholder if the template declares it, else *fallback*."""
        return "{{" + variable_id + "}}" if variable_id in self.variable_ids() else fallback

    def as_context(self, **extra: Any) -> dict[str, Any]:
        context: dict[str, Any] = {
            "path": self.path.as_posix(),
            "filename": self.filename,
            "stem": self.stem,
            "extension": self.extension,
            "route_segment": _clean_segment(self.parent),
            "component_name": self.component_name,
            "template_id": self.template.id,
            "family": self.family,
            "is_blank": self.is_blank,
            "has_auth": self.has_auth,
        }
        context.update(extra)
        return context


def _clean_segment(segment: str) -> str:
    """``(auth)`` -> ``auth``, ``[slug]`` -> ``slug``, ``[...nextauth]`` -> ``nextauth``."""
    return re.sub(r"[^A-Za-z0-9_-]+", "", segment)


def _component_case(segment: str) -> str:
    """``user-menu`` -> ``UserMenu``; inner capitals are kept (``PostCard``)."""
    return "".join(word[:1].upper() + word[1:] for word in re.split(r"[-_\s]+", segment) if word)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

Generator = Callable[[FileContext, TemplateRenderer], str]


@dataclass(frozen=True)
class ContentRule:
    name: str
    matches: Callable[[FileContext], bool]
    generate: Generator


def _by_name(*names: str) -> Callable[[FileContext], bool]:
    return lambda ctx: ctx.filename in names


def _by_extension(*extensions: str) -> Callable[[FileContext], bool]:
    return lambda ctx: ctx.extension in extensions


# -- JSON -----------------------------------------------------------------

_FAMILY_DEPENDENCIES: dict[str, dict[str, str]] = {
    "blog": {"gray-matter": "^4.0.3", "remark": "^15.0.1", "remark-html": "^16.0.1"},
    "ecommerce": {"stripe": "^14.10.0", "@stripe/stripe-js": "^2.2.2"},
    "nextjs": {"next-auth": "^4.24.5", "@prisma/client": "^5.8.0"},
}

_NEXT_DEPENDENCIES = {"next": "^14.0.4", "react": "^18.2.0", "react-dom": "^18.2.0"}


def _package_manifest(ctx: FileContext) -> dict[str, Any]:
    manifest: dict[str, Any] = {
        "name": "{{PROJECT_NAME_KEBAB}}",
        "version": "0.1.0",
        "private": True,
        "description": "{{PROJECT_NAME}}",
    }

    if ctx.family == "fullstack" and ctx.parent == "server":
        manifest.update(
            name="{{PROJECT_NAME_KEBAB}}-server",
            description="{{PROJECT_NAME}} API server",
            main="index.js",
            scripts={"dev": "nodemon index.js", "start": "node index.js"},
            dependencies={"express": "^4.18.2", "cors": "^2.8.5"},
            devDependencies={"nodemon": "^3.0.2"},
        )
    elif ctx.family == "fullstack" and ctx.parent == "client":
        manifest.update(
            name="{{PROJECT_NAME_KEBAB}}-client",
            description="{{PROJECT_NAME}} web client",
            scripts={"dev": "react-scripts start", "build": "react-scripts build"},
            dependencies={"react": "^18.2.0", "react-dom": "^18.2.0", "react-scripts": "5.0.1"},
            proxy="http://localhost:3001",
        )
    elif ctx.family == "fullstack":
        manifest.update(
            main="server/index.js",
            scripts={
                "dev": "nodemon server/index.js",
                "start": "node server/index.js",
                "prisma:generate": "prisma generate",
                "prisma:migrate": "prisma migrate dev",
                "prisma:seed": "ts-node prisma/seed.ts",
            },
            dependencies={
                "express": "^4.18.2",
                "cors": "^2.8.5",
                "dotenv": "^16.3.1",
                "@prisma/client": "^5.8.0",
                "bcryptjs": "^2.4.3",
                "jsonwebtoken": "^9.0.2",
                "helmet": "^7.1.0",
                "compression": "^1.7.4",
                "express-rate-limit": "^7.1.5",
            },
            devDependencies={
                "prisma": "^5.8.0",
                "nodemon": "^3.0.2",
                "ts-node": "^10.9.2",
                "typescript": "^5.3.3",
            },
        )
    else:
        dependencies = dict(_NEXT_DEPENDENCIES)
        if not ctx.is_blank:
            dependencies.update(_FAMILY_DEPENDENCIES.get(ctx.family, {}))
        elif ctx.has_auth:
            dependencies["next-auth"] = _FAMILY_DEPENDENCIES["nextjs"]["next-auth"]
        manifest["scripts"] = {
            "dev": "next dev",
            "build": "next build",
            "start": "next start",
            "lint": "next lint",
        }
        manifest["dependencies"] = dependencies
        if ctx.family == "nextjs":
            manifest["devDependencies"] = {
                "typescript": "^5.3.3",
                "@types/node": "^20.10.5",
                "@types/react": "^18.2.45",
            }
    return manifest


def generate_package_json(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return json.dumps(_package_manifest(ctx), indent=2) + "\n"


def generate_tsconfig(ctx: FileContext, renderer: TemplateRenderer) -> str:
    config = {
        "compilerOptions": {
            "target": "es5",
            "lib": ["dom", "dom.iterable", "esnext"],
            "allowJs": True,
            "skipLibCheck": True,
            "strict": True,
            "noEmit": True,
            "esModuleInterop": True,
            "module": "esnext",
            "moduleResolution": "bundler",
            "resolveJsonModule": True,
            "isolatedModules": True,
            "jsx": "preserve",
            "incremental": True,
            "plugins": [{"name": "next"}],
            "paths": {"@/*": ["./*"]},
        },
        "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
        "exclude": ["node_modules"],
    }
    # tsconfig.json is parsed as JSONC, so a leading comment is allowed.
    return "// {{PROJECT_NAME}} TypeScript configuration\n" + json.dumps(config, indent=2) + "\n"


def generate_json(ctx: FileContext, renderer: TemplateRenderer) -> str:
    data = {
        "name": "{{PROJECT_NAME_KEBAB}}",
        "description": "{{PROJECT_NAME}} " + ctx.stem,
    }
    return json.dumps(data, indent=2) + "\n"


# -- Markdown -------------------------------------------------------------


def generate_readme(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render(
        "README.md.j2",
        ctx.as_context(
            description=ctx.template.description,
            features=ctx.template.features,
            technologies=ctx.template.technologies,
            variables=ctx.template.variables,
            env_names=[v.name for v in suggested_variables(ctx.template)],
            is_fullstack=ctx.family == "fullstack",
        ),
    )


def generate_markdown(ctx: FileContext, renderer: TemplateRenderer) -> str:
    title = " ".join(word.capitalize() for word in re.split(r"[-_\s]+", ctx.stem) if word)
    return renderer.render(
        "post.md.j2",
        ctx.as_context(title=title, author=ctx.variable_or("AUTHOR_NAME", "Your Name")),
    )


# -- JavaScript / TypeScript ---------------------------------------------


def generate_jsx(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render("component.jsx.j2", ctx.as_context())


def generate_tsx(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render("component.tsx.j2", ctx.as_context())


def generate_ts(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render("module.ts.j2", ctx.as_context())


def generate_next_config(ctx: FileContext, renderer: TemplateRenderer) -> str:
    image_hosts: list[str] = []
    if ctx.family == "ecommerce":
        image_hosts = ["images.unsplash.com", "files.stripe.com"]
    elif ctx.has_auth:
        image_hosts = ["lh3.googleusercontent.com"]
    return renderer.render(
        "next.config.js.j2",
        ctx.as_context(uses_images=bool(image_hosts), image_hosts=image_hosts),
    )


_SERVER_KINDS = {
    "routes": "routes",
    "controllers": "controller",
}

_SERVER_FILES = {
    "auth": "auth",
    "errorHandler": "error_handler",
    "database": "database",
}


def _is_server_file(ctx: FileContext) -> bool:
    return ctx.family == "fullstack" and ctx.path.parts[0] == "server"


def generate_server_js(ctx: FileContext, renderer: TemplateRenderer) -> str:
    if ctx.stem == "index" and ctx.parent == "server":
        kind = "server"
    else:
        kind = _SERVER_KINDS.get(ctx.parent) or _SERVER_FILES.get(ctx.stem, "")
    resource = re.sub(r"Controller$", "", ctx.stem)
    model = resource[:-1] if resource.endswith("s") else resource
    extra = {
        "kind": kind,
        "api_port": ctx.variable_or("API_PORT", "3001"),
        "controller": f"{model}Controller",
        "model": model,
        "auth_enabled": "server/middleware/auth.js" in ctx.template.files,
    }
    if not kind:
        return renderer.render("pages.js.j2", ctx.as_context(kind=""))
    return renderer.render("server.js.j2", ctx.as_context(**extra))


_SAMPLE_ITEMS = {
    "posts": [
        "{ slug: 'hello-world', title: 'Hello World', date: '2025-01-01', excerpt: 'Your first post.' }",
    ],
    "products": [
        "{ id: '1', name: 'Sample Product', price: 19.99, image: '/placeholder.png' }",
        "{ id: '2', name: 'Another Product', price: 29.99, image: '/placeholder.png' }",
    ],
}


def generate_js(ctx: FileContext, renderer: TemplateRenderer) -> str:
    parts = ctx.path.parts
    if ctx.stem == "stripe":
        kind = "stripe"
    elif "api" in parts and ctx.stem.startswith("["):
        kind = "api_item"
    elif "api" in parts:
        kind = "api_collection"
    elif ctx.stem.startswith("["):
        kind = "post_page"
    elif parts[0] == "pages" and ctx.stem == "index" and len(parts) == 2:
        kind = "home"
    else:
        kind = ""

    resource = ctx.stem if ctx.stem not in ("index",) else ctx.parent
    resource = _clean_segment(resource) or "items"
    return renderer.render(
        "pages.js.j2",
        ctx.as_context(
            kind=kind,
            resource=resource,
            sample_items=_SAMPLE_ITEMS.get(resource, []),
            site_title=ctx.variable_or("SITE_TITLE", "{{PROJECT_NAME}}"),
            store_name=ctx.variable_or("STORE_NAME", "{{PROJECT_NAME}}"),
            currency=ctx.variable_or("CURRENCY", "USD"),
        ),
    )


# -- Other formats --------------------------------------------------------


def generate_yaml(ctx: FileContext, renderer: TemplateRenderer) -> str:
    if ctx.stem == "docker-compose":
        return renderer.render(
            "docker-compose.yml.j2",
            ctx.as_context(database_name=ctx.variable_or("DATABASE_NAME", "app_db")),
        )
    return renderer.render_string(
        "# {{PROJECT_NAME}}: <@ filename @>\nname: \"{{PROJECT_NAME_KEBAB}}\"\n", ctx.as_context()
    )


def generate_css(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render("globals.css.j2", ctx.as_context())


def generate_html(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render("index.html.j2", ctx.as_context())


def generate_prisma(ctx: FileContext, renderer: TemplateRenderer) -> str:
    return renderer.render("schema.prisma.j2", ctx.as_context())


def generate_env(ctx: FileContext, renderer: TemplateRenderer) -> str:
    variables = [
        {"name": v.name, "example_value": example_value(v)}
        for v in suggested_variables(ctx.template)
    ]
    primary = primary_env_filename(uses_frontend_conventions(ctx.template))
    return renderer.render(
        "env.example.j2", ctx.as_context(variables=variables, primary_env_file=primary)
    )


_HASH_COMMENT_EXTENSIONS = ("", "sh", "py", "toml", "txt", "cfg", "ini", "conf", "rb")


def generate_fallback(ctx: FileContext, renderer: TemplateRenderer) -> str:
    """One comment line naming the file, in the file type's comment syntax."""
    if ctx.extension in _HASH_COMMENT_EXTENSIONS or ctx.filename.startswith("."):
        return f"# {{{{PROJECT_NAME}}}}: {ctx.filename}\n"
    return f"// {{{{PROJECT_NAME}}}}: {ctx.filename}\n"


DEFAULT_RULES: tuple[ContentRule, ...] = (
    ContentRule("package-manifest", _by_name("package.json"), generate_package_json),
    ContentRule("tsconfig", _by_name("tsconfig.json"), generate_tsconfig),
    ContentRule("readme", _by_name("README.md"), generate_readme),
    ContentRule("next-config", _by_name("next.config.js", "next.config.mjs"), generate_next_config),
    ContentRule("env", lambda ctx: ctx.filename.startswith(".env"), generate_env),
    ContentRule("server-js", lambda ctx: ctx.extension == "js" and _is_server_file(ctx), generate_server_js),
    ContentRule("jsx", _by_extension("jsx"), generate_jsx),
    ContentRule("tsx", _by_extension("tsx"), generate_tsx),
    ContentRule("js", _by_extension("js", "mjs"), generate_js),
    ContentRule("ts", _by_extension("ts"), generate_ts),
    ContentRule("markdown", _by_extension("md"), generate_markdown),
    ContentRule("json", _by_extension("json"), generate_json),
    ContentRule("yaml", _by_extension("yml", "yaml"), generate_yaml),
    ContentRule("css", _by_extension("css"), generate_css),
    ContentRule("html", _by_extension("html"), generate_html),
    ContentRule("prisma", _by_extension("prisma"), generate_prisma),
    ContentRule("fallback", lambda ctx: True, generate_fallback),
)
