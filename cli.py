"""
Vault Chat CLI Client
---------------------
A rich-formatted command line interface for the Vault Chat API.
Keeps the conversation id in .cli_conversation so a restarted client
continues the same conversation.

Commands inside the loop:
  /mode <none|rag|web|hybrid>   switch retrieval mode
  /note <path>                  set (or clear) the current note
  /index [rebuild]              index the vault
  /new                          start a new conversation
"""

import asyncio
import argparse
import aiohttp
import os
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

console = Console()
CONVERSATION_FILE = ".cli_conversation"
MODES = ["none", "rag", "web", "hybrid"]

def load_conversation_id():
    if os.path.exists(CONVERSATION_FILE):
        with open(CONVERSATION_FILE, 'r') as f:
            return f.read().strip() or None
    return None

def save_conversation_id(conversation_id):
    if conversation_id is None:
        if os.path.exists(CONVERSATION_FILE):
            os.remove(CONVERSATION_FILE)
        return
    with open(CONVERSATION_FILE, 'w') as f:
        f.write(conversation_id)

async def index_vault(session: aiohttp.ClientSession, api_url: str, vault, rebuild: bool):
    payload = {"vault_path": vault, "rebuild": rebuild}
    with console.status("[yellow]Indexing vault...[/yellow]", spinner="dots"):
        async with session.post(f"{api_url}/api/index", json=payload) as resp:
            data = await resp.json()
            if resp.status != 200:
                console.print(f"[red]Error {resp.status}: {data.get('detail')}[/red]")
                return
    console.print(
        f"[green]Indexed {data['files_indexed']} notes ({data['chunks_indexed']} chunks).[/green]"
    )
    for path in data.get("failed_files", []):
        console.print(f"[dim red]- failed: {path}[/dim red]")

async def chat_loop(api_url: str, vault, mode: str):
    """
    Main interactive chat loop.
    Handles user input, slash commands and rendering of replies.
    """
    conversation_id = load_conversation_id()
    current_note = None
    console.print(f"[bold green]Connected to Vault Chat (Conversation: {conversation_id or 'new'})[/bold green]")
    console.print("Type 'exit' to quit. Commands: /mode, /note, /index, /new")

    async with aiohttp.ClientSession() as session:
        while True:
            try:
                user_input = console.input(f"\n[bold cyan]You ({mode}) > [/bold cyan]").strip()
                if user_input.lower() in ["exit", "quit"]:
                    break
                if not user_input:
                    continue

                if user_input.startswith("/"):
                    command, _, arg = user_input.partition(" ")
                    arg = arg.strip()
                    if command == "/mode" and arg in MODES:
                        mode = arg
                    elif command == "/note":
                        current_note = arg or None
                        console.print(f"[dim]Current note: {current_note or 'none'}[/dim]")
                    elif command == "/index":
                        await index_vault(session, api_url, vault, arg == "rebuild")
                    elif command == "/new":
                        conversation_id = None
                        save_conversation_id(None)
                        console.print("[dim]Started a new conversation.[/dim]")
                    else:
                        console.print(f"[yellow]Unknown command: {user_input}[/yellow]")
                    continue

                payload = {
                    "message": user_input,
                    "conversation_id": conversation_id,
                    "vault_id": vault,
                    "mode": mode,
                    "current_note_path": current_note,
                }
                with console.status("[yellow]Thinking...[/yellow]", spinner="dots"):
                    async with session.post(f"{api_url}/api/chat", json=payload) as resp:
                        data = await resp.json()

                if resp.status != 200:
                    console.print(f"[red]Error {resp.status}: {data.get('detail')}[/red]")
                    continue

                conversation_id = data["conversation_id"]
                save_conversation_id(conversation_id)
                title = f"Bot ({data['agent']})" if data.get("agent") else "Bot"
                console.print(Panel(Markdown(data["assistant_message"]), title=f"[magenta]{title}[/magenta]"))

            except KeyboardInterrupt:
                break
            except aiohttp.ClientError as e:
                console.print(f"[red]Connection Error: {e}[/red]")

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--url", default="http://localhost:8000", help="API URL")
    parser.add_argument("--vault", default=os.getenv("VAULT_PATH"), help="Vault directory (defaults to the server's vault)")
    parser.add_argument("--mode", default="none", choices=MODES, help="Retrieval mode")
    args = parser.parse_args()

    try:
        asyncio.run(chat_loop(args.url, args.vault, args.mode))
    except KeyboardInterrupt:
        pass
