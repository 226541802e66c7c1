"""
Main entry point for teleprompter.
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from rich.logging import RichHandler

from .config import ConfigManager, get_config
from .constants import APP_DESCRIPTION, APP_NAME, APP_VERSION, PROVIDERS
from .exceptions import TeleprompterError
from .history import RunStore, TestRun, get_run_store
from .llm import ModelInfo, ProviderRegistry
from .rich_ui import Display, collect_values
from .runner import PromptRunner, rerun_values
from .service import PromptServiceClient, get_access_token, is_token_valid, store_token
from .service.models import Prompt
from .template import extract_variables, parse_assignments
from .utils import expand_path


logger = logging.getLogger(__name__)


@dataclass
class Context:
    """Collaborators shared by every command."""
    config: ConfigManager
    store: RunStore
    display: Display


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog=APP_NAME, description=APP_DESCRIPTION)

    parser.add_argument(
        "--version",
        action="version",
        version=f"{APP_NAME} {APP_VERSION}"
    )
    parser.add_argument("-u", "--url", type=str, help="URL of the teleprompter service")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable verbose logging")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("list", help="List all active prompts")

    get_parser = subparsers.add_parser("get", help="Fetch a prompt by ID")
    get_parser.add_argument("prompt_id")
    get_parser.add_argument("-j", "--json", action="store_true", help="return prompt as JSON")

    versions_parser = subparsers.add_parser("versions", help="List all versions of a prompt")
    versions_parser.add_argument("prompt_id")

    put_parser = subparsers.add_parser("put", help="Create a new version of a prompt")
    put_parser.add_argument("prompt_id")
    put_parser.add_argument("namespace")
    put_parser.add_argument("text", nargs="?", help="prompt text (read from stdin if omitted)")

    rollback_parser = subparsers.add_parser("rollback", help="Restore a specific version of a prompt")
    rollback_parser.add_argument("prompt_id")
    rollback_parser.add_argument("version", type=int)

    export_parser = subparsers.add_parser("export", help="Export prompts matching pattern to JSON files")
    export_parser.add_argument("pattern")
    export_parser.add_argument("-o", "--out", default=".", help="Output directory for JSON files")

    import_parser = subparsers.add_parser("import", help="Import prompts from JSON files")
    import_parser.add_argument("files", nargs="+")

    for name, help_text in (
        ("vars", "Show the variables a prompt template needs"),
        ("compile", "Render a prompt template without running it"),
        ("run", "Run a prompt template against one or more models"),
    ):
        template_parser = subparsers.add_parser(name, help=help_text)
        template_parser.add_argument("prompt_id", nargs="?")
        template_parser.add_argument("-f", "--file", type=str, help="read the template from a local file")
        if name == "vars":
            template_parser.add_argument("-j", "--json", action="store_true", help="print as JSON")
            continue
        template_parser.add_argument(
            "-s", "--set", action="append", default=[], metavar="NAME=VALUE",
            help="set a variable (repeatable; arrays are comma-separated)"
        )
        template_parser.add_argument("--values", type=str, help="JSON file with variable values")
        if name == "run":
            template_parser.add_argument(
                "-m", "--model", action="append", default=[], metavar="PROVIDER/MODEL",
                help="model to run against (repeat to compare models)"
            )
            template_parser.add_argument("--rerun", type=str, metavar="RUN_ID", help="reuse the values of a stored run")
            template_parser.add_argument("--no-save", action="store_true", help="do not record the run in history")
            template_parser.add_argument("--no-input", action="store_true", help="never ask for missing values")

    subparsers.add_parser("models", help="List models of configured providers")

    history_parser = subparsers.add_parser("history", help="Show and manage test run history")
    history_sub = history_parser.add_subparsers(dest="history_command")
    history_list = history_sub.add_parser("list", help="List stored runs")
    history_list.add_argument("-p", "--prompt", type=str, help="only runs of this prompt")
    history_show = history_sub.add_parser("show", help="Show one run")
    history_show.add_argument("run_id")
    history_delete = history_sub.add_parser("delete", help="Delete one run")
    history_delete.add_argument("run_id")

    login_parser = subparsers.add_parser("login", help="Store an access token for the service")
    login_parser.add_argument("token")

    config_parser = subparsers.add_parser("config", help="Show or change configuration")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Show configuration")
    set_key = config_sub.add_parser("set-key", help="Store a provider API key")
    set_key.add_argument("provider", choices=list(PROVIDERS))
    set_key.add_argument("api_key")
    set_url = config_sub.add_parser("set-url", help="Store the default service URL")
    set_url.add_argument("service_url")
    set_model = config_sub.add_parser("set-model", help="Store the default model")
    set_model.add_argument("model", metavar="PROVIDER/MODEL")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    """Route log records through Rich; DEBUG when verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _client(args: argparse.Namespace, ctx: Context) -> PromptServiceClient:
    url = ctx.config.service_url(args.url)
    logger.debug(f"Using service URL: {url}")
    return PromptServiceClient(url, get_access_token(url))


async def _load_prompt(args: argparse.Namespace, ctx: Context) -> Prompt:
    if args.file:
        path = expand_path(args.file)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TeleprompterError(f"Cannot read template file {path}: {e}") from e
        return Prompt(id=args.prompt_id or path.stem, namespace="local", version=0, prompt=text)

    if not args.prompt_id:
        raise TeleprompterError("Give a prompt ID or --file")
    return await _client(args, ctx).get_prompt(args.prompt_id)


def _find_run(store: RunStore, run_id: str) -> TestRun:
    run = store.get_run(run_id)
    if run:
        return run

    matches = [r for r in store.list_runs() if r.id.startswith(run_id)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise TeleprompterError(f"Run ID '{run_id}' is ambiguous")
    raise TeleprompterError(f"Run not found: {run_id}")


def _given_values(args: argparse.Namespace, declarations: list) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if args.values:
        try:
            with open(expand_path(args.values), 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TeleprompterError(f"Cannot read values file {args.values}: {e}") from e
        if not isinstance(loaded, dict):
            raise TeleprompterError(f"Values file {args.values} must hold a JSON object")
        values.update(loaded)

    try:
        values.update(parse_assignments(args.set, declarations))
    except ValueError as e:
        raise TeleprompterError(str(e)) from e
    return values


async def cmd_list(args: argparse.Namespace, ctx: Context) -> int:
    ctx.display.prompts(await _client(args, ctx).list_prompts())
    return 0


async def cmd_get(args: argparse.Namespace, ctx: Context) -> int:
    prompt = await _client(args, ctx).get_prompt(args.prompt_id)
    if args.json:
        ctx.display.json(prompt.to_dict())
    else:
        ctx.display.prompt(prompt)
    return 0


async def cmd_versions(args: argparse.Namespace, ctx: Context) -> int:
    ctx.display.versions(await _client(args, ctx).list_versions(args.prompt_id))
    return 0


async def cmd_put(args: argparse.Namespace, ctx: Context) -> int:
    if args.text:
        text = args.text.strip()
    elif not sys.stdin.isatty():
        text = sys.stdin.read().strip()
    else:
        raise TeleprompterError("Prompt text must be provided as an argument or through stdin")

    logger.debug(f"Prompt text is {len(text)} characters")
    await _client(args, ctx).put_prompt(args.prompt_id, args.namespace, text)
    ctx.display.success(f"Successfully created prompt: {args.prompt_id}")
    return 0


async def cmd_rollback(args: argparse.Namespace, ctx: Context) -> int:
    await _client(args, ctx).rollback(args.prompt_id, args.version)
    ctx.display.success(f"Rolled back {args.prompt_id} to version {args.version}")
    return 0


async def cmd_export(args: argparse.Namespace, ctx: Context) -> int:
    written = await _client(args, ctx).export_prompts(args.pattern, expand_path(args.out))
    if not written:
        ctx.display.info(f"No prompts exported for pattern: {args.pattern}")
        return 0

    for path in written:
        ctx.display.info(f"Exported {path}")
    noun = "prompt" if len(written) == 1 else "prompts"
    ctx.display.success(f"Exported {len(written)} {noun} to {args.out}")
    return 0


async def cmd_import(args: argparse.Namespace, ctx: Context) -> int:
    report = await _client(args, ctx).import_prompts([expand_path(f) for f in args.files])
    for prompt_id in report.imported:
        ctx.display.success(f"Successfully imported prompt: {prompt_id}")
    for source in report.skipped:
        ctx.display.muted(f"Skipped invalid prompt in {source}: missing required fields")
    for item in report.failed:
        ctx.display.error(f"Failed to import {item}")
    return 0 if report.ok else 1


async def cmd_vars(args: argparse.Namespace, ctx: Context) -> int:
    prompt = await _load_prompt(args, ctx)
    declarations = extract_variables(prompt.prompt or "")
    if args.json:
        ctx.display.json([d.to_dict() for d in declarations])
    else:
        ctx.display.variables(declarations)
    return 0


async def cmd_compile(args: argparse.Namespace, ctx: Context) -> int:
    prompt = await _load_prompt(args, ctx)
    runner = PromptRunner(ProviderRegistry(ctx.config), ctx.store)
    values = _given_values(args, runner.prepare(prompt))
    ctx.display.console.print(runner.compile(prompt, values), markup=False, highlight=False)
    return 0


async def cmd_run(args: argparse.Namespace, ctx: Context) -> int:
    registry = ProviderRegistry(ctx.config)
    runner = PromptRunner(registry, ctx.store)

    prompt = await _load_prompt(args, ctx)
    declarations = runner.prepare(prompt)

    values: dict[str, Any] = {}
    if args.rerun:
        values.update(rerun_values(_find_run(ctx.store, args.rerun), declarations))
    values.update(_given_values(args, declarations))

    if not args.no_input and sys.stdin.isatty():
        values = collect_values(declarations, values)

    names = args.model or ([ctx.config.config.default_model] if ctx.config.config.default_model else [])
    if not names:
        raise TeleprompterError("Select a model with -m provider/model or 'tp config set-model'")
    models = [registry.resolve_model(name) for name in names]

    streaming = len(models) == 1

    def on_chunk(model: ModelInfo, text: str) -> None:
        if streaming:
            ctx.display.stream(text)

    results = await runner.run(prompt, values, models, on_chunk=on_chunk, save=not args.no_save)

    if streaming:
        ctx.display.info("")
    for result in results:
        if not streaming or not result.ok:
            ctx.display.output(
                result.model.display_name,
                result.error or result.output,
                failed=not result.ok
            )
        if result.run:
            ctx.display.muted(f"Saved run {result.run.id[:8]} ({result.model.display_name})")

    return 0 if all(result.ok for result in results) else 1


async def cmd_models(args: argparse.Namespace, ctx: Context) -> int:
    ctx.display.models(await ProviderRegistry(ctx.config).fetch_all_models())
    return 0


async def cmd_history(args: argparse.Namespace, ctx: Context) -> int:
    command = args.history_command or "list"

    if command == "show":
        ctx.display.run(_find_run(ctx.store, args.run_id))
        return 0

    if command == "delete":
        run = _find_run(ctx.store, args.run_id)
        ctx.store.delete_run(run.id)
        ctx.display.success(f"Deleted run {run.id}")
        return 0

    ctx.display.history(ctx.store.list_runs(getattr(args, "prompt", None)))
    return 0


async def cmd_login(args: argparse.Namespace, ctx: Context) -> int:
    store_token(args.token)
    if not is_token_valid(args.token):
        ctx.display.muted("Warning: token has no valid future 'exp' claim and will be rejected")
    ctx.display.success("Token stored")
    return 0


async def cmd_config(args: argparse.Namespace, ctx: Context) -> int:
    command = args.config_command or "show"
    config = ctx.config

    if command == "set-key":
        config.set_provider_api_key(args.provider, args.api_key)
        ctx.display.success(f"Stored API key for {args.provider}")
    elif command == "set-url":
        config.set_url(args.service_url)
        ctx.display.success(f"Default service URL set to {config.config.url}")
    elif command == "set-model":
        ProviderRegistry(config).resolve_model(args.model)
        config.set_default_model(args.model)
        ctx.display.success(f"Default model set to {args.model}")
    else:
        ctx.display.json({
            "configFile": str(config.config_file),
            "url": config.config.url,
            "defaultModel": config.config.default_model,
            "configuredProviders": config.configured_providers(),
        })
    return 0


COMMANDS = {
    "list": cmd_list,
    "get": cmd_get,
    "versions": cmd_versions,
    "put": cmd_put,
    "rollback": cmd_rollback,
    "export": cmd_export,
    "import": cmd_import,
    "vars": cmd_vars,
    "compile": cmd_compile,
    "run": cmd_run,
    "models": cmd_models,
    "history": cmd_history,
    "login": cmd_login,
    "config": cmd_config,
}


def main(
    argv: Optional[list[str]] = None,
    config: Optional[ConfigManager] = None,
    store: Optional[RunStore] = None,
    display: Optional[Display] = None
) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    ctx = Context(
        config=config or get_config(),
        store=store or get_run_store(),
        display=display or Display(),
    )
    handler = COMMANDS[args.command or "list"]

    try:
        return asyncio.run(handler(args, ctx))
    except (TeleprompterError, httpx.HTTPError) as e:
        ctx.display.error(str(e))
        logger.debug("Command failed", exc_info=True)
        return 1
    except KeyboardInterrupt:
        ctx.display.info("\nCancelled.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
