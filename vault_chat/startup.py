"""
Startup Wizard
--------------
Resolves the chat model, the embedding model and the default vault before the
server starts. A complete `.env` is offered first; otherwise the user picks
hosts and models from what each Ollama host actually serves.
"""

from rich.console import Console
from rich.prompt import Prompt, Confirm
from rich.panel import Panel
from rich.table import Table
from rich import box
from dotenv import dotenv_values
from typing import Dict, List, Optional, Tuple
import asyncio
import ollama
import os
from vault_chat.config import set_main_model, set_embedding_model, set_vault_path
from vault_chat.notes.filesystem import NoteFileSystem

console = Console()

LOCAL_OLLAMA = "http://localhost:11434"
REQUIRED_ENV_KEYS = ["VAULT_MAIN_HOST", "VAULT_MAIN_MODEL", "VAULT_EMBED_HOST", "VAULT_EMBED_MODEL"]
EMBEDDING_HINTS = ("embed", "bert", "minilm", "bge", "e5-")

ENV_EXAMPLE = (
    "VAULT_MAIN_HOST=\"http://localhost:11434\"\n"
    "VAULT_MAIN_MODEL=\"llama3\"\n"
    "VAULT_EMBED_HOST=\"http://localhost:11434\"\n"
    "VAULT_EMBED_MODEL=\"nomic-embed-text\"\n"
    "VAULT_PATH=\"/home/me/notes\"        # optional\n"
    "TAVILY_API_KEY=\"tvly-...\"          # optional, enables web retrieval"
)

def is_embedding_model(entry: Dict) -> bool:
    details = entry.get('details') or {}
    haystack = f"{entry.get('model', '')} {details.get('family', '')}".lower()
    return any(hint in haystack for hint in EMBEDDING_HINTS)

def list_host_models(host: str) -> List[Dict]:
    """Models served by `host`. Connection errors propagate."""
    response = ollama.Client(host=host).list()
    return [dict(m) for m in response.get('models', [])]

def model_missing_reason(host: str, model_name: str) -> Optional[str]:
    """None when `model_name` (with or without a tag) is served by `host`."""
    try:
        names = [m['model'] for m in list_host_models(host)]
    except Exception as e:
        return f"host unreachable ({e})"
    if model_name in names or any(n.startswith(f"{model_name}:") for n in names):
        return None
    return f"not pulled on this host (has: {', '.join(names[:5]) or 'nothing'})"

def count_notes(vault_path: str) -> int:
    return len(asyncio.run(NoteFileSystem().list_markdown_files(vault_path)))

def ask_host(role: str, default: str = LOCAL_OLLAMA) -> str:
    return Prompt.ask(f"Ollama host for the [bold]{role}[/bold] model", default=default).rstrip("/")

def choose_model(host: str, role: str, embedding: bool) -> Tuple[str, str]:
    """Lists the host's models, suited kind first, and returns (model, host)."""
    while True:
        try:
            with console.status(f"[bold green]Listing models on {host}...[/bold green]", spinner="dots"):
                models = list_host_models(host)
        except Exception as e:
            console.print(f"[red]Could not reach {host}: {e}[/red]")
            host = ask_host(role, host)
            continue

        if not models:
            console.print(f"[red]{host} serves no models. Pull one with `ollama pull` or pick another host.[/red]")
            host = ask_host(role, host)
            continue

        models.sort(key=lambda m: (is_embedding_model(m) != embedding, m['model']))

        table = Table(title=f"{role} model on {host}", box=box.SIMPLE_HEAVY)
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Model", style="magenta")
        table.add_column("Kind", style="yellow")
        table.add_column("Parameters", style="green")
        for idx, m in enumerate(models, 1):
            details = m.get('details') or {}
            kind = "embedding" if is_embedding_model(m) else "chat"
            table.add_row(str(idx), m['model'], kind, details.get('parameter_size') or "?")
        console.print(table)

        choices = [str(i) for i in range(1, len(models) + 1)]
        selection = Prompt.ask(f"Pick the {role} model", choices=choices, default="1")
        return models[int(selection) - 1]['model'], host

def choose_vault(default: Optional[str] = None) -> str:
    while True:
        path = Prompt.ask("Notes vault directory", default=default or os.getcwd())
        path = os.path.abspath(os.path.expanduser(path))
        if not os.path.isdir(path):
            console.print(f"[red]Not a directory: {path}[/red]")
            continue
        notes = count_notes(path)
        if notes or Confirm.ask(f"[yellow]No markdown notes under {path}. Use it anyway?[/yellow]", default=False):
            console.print(f"[green]{notes} note(s) found.[/green]")
            return path

def settings_table(main: Tuple[str, str], embed: Tuple[str, str], vault: Optional[str], web: bool) -> Table:
    table = Table(box=box.MINIMAL, show_header=False)
    table.add_column(style="bold")
    table.add_column(style="cyan")
    table.add_row("Chat model", f"{main[0]} @ {main[1]}")
    table.add_row("Embedding model", f"{embed[0]} @ {embed[1]}")
    table.add_row("Default vault", vault or "none (clients must send vault_id)")
    table.add_row("Web retrieval", "enabled" if web else "disabled (no TAVILY_API_KEY)")
    return table

def load_env_config(env_path: str = ".env") -> bool:
    """Applies a complete, verified `.env` if the user accepts it."""
    if not os.path.exists(env_path):
        return False
    env = {k: v for k, v in dotenv_values(env_path).items() if v}
    if not all(k in env for k in REQUIRED_ENV_KEYS):
        return False

    main = (env['VAULT_MAIN_MODEL'], env['VAULT_MAIN_HOST'])
    embed = (env['VAULT_EMBED_MODEL'], env['VAULT_EMBED_HOST'])
    console.print(Panel(
        settings_table(main, embed, env.get('VAULT_PATH'), bool(env.get('TAVILY_API_KEY'))),
        title=f"Settings from {env_path}",
        border_style="green",
    ))
    if not Confirm.ask("Start with these settings?", default=True):
        return False

    problems = []
    with console.status("[bold yellow]Checking models...[/bold yellow]", spinner="dots"):
        for role, (model_name, host) in (("chat", main), ("embedding", embed)):
            reason = model_missing_reason(host, model_name)
            if reason:
                problems.append(f"{role} model [cyan]{model_name}[/cyan] @ {host}: {reason}")

    if problems:
        for problem in problems:
            console.print(f"[bold red]✗[/bold red] {problem}")
        console.print("[yellow]Falling back to the wizard.[/yellow]")
        return False

    set_main_model(main[1], main[0])
    set_embedding_model(embed[1], embed[0])
    if env.get('VAULT_PATH'):
        set_vault_path(os.path.abspath(os.path.expanduser(env['VAULT_PATH'])))
    console.print("[bold green]✓ Models verified.[/bold green]")
    return True

def run_interactive_config():
    if load_env_config():
        return

    console.print(Panel.fit("Vault Chat setup", style="bold blue"))
    if not os.path.exists(".env"):
        console.print(Panel(ENV_EXAMPLE, title="Skip this next time with a .env like", border_style="dim"))

    while True:
        main = choose_model(ask_host("chat"), "chat", embedding=False)
        embed_host = main[1] if Confirm.ask(f"Embedding model from {main[1]} too?", default=True) else ask_host("embedding")
        embed = choose_model(embed_host, "embedding", embedding=True)
        vault = choose_vault(os.getenv("VAULT_PATH"))

        console.print(settings_table(main, embed, vault, bool(os.getenv("TAVILY_API_KEY"))))
        if Confirm.ask("Start with these settings?", default=True):
            set_main_model(main[1], main[0])
            set_embedding_model(embed[1], embed[0])
            set_vault_path(vault)
            return
        console.print("[yellow]Starting over.[/yellow]")
