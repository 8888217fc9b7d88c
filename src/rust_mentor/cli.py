from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from rust_mentor.artifacts import artifact_filename, render_artifact_markdown
from rust_mentor.data_models import ChatMode
from rust_mentor.errors import MentorError
from rust_mentor.ingestion import guess_mime_type
from rust_mentor.learning import QuizStatus
from rust_mentor.storage import WriteOutcome
from rust_mentor.system import AppMode, MentorSystem
from rust_mentor.utils.audio import pcm_to_wav

app = typer.Typer(help="Rust mentor: lessons, self-explanation, quizzes and knowledge artifacts.")
console = Console()

candidate_paths = [Path.cwd() / ".env", Path(__file__).resolve().parents[2] / ".env"]
for env_path in candidate_paths:
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
        break

ConfigOption = typer.Option(None, "--config", help="Path to configuration YAML.")


def _load_system(config: Optional[Path]) -> MentorSystem:
    """Instantiate `MentorSystem`, turning configuration problems into a clean CLI error."""
    try:
        return MentorSystem.from_config(config)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _print_dashboard(system: MentorSystem) -> None:
    summary = system.dashboard()
    console.print(
        f"[bold]Level:[/bold] {summary['level']}   "
        f"[bold]Coverage:[/bold] {summary['coverage_percent']}%   "
        f"[bold]Artifacts:[/bold] {summary['artifact_count']}   "
        f"[bold]Sessions:[/bold] {summary['total_sessions']}"
    )
    table = Table(title="Custom curriculum" if summary["custom_curriculum"] else "Curriculum")
    table.add_column("#", justify="right")
    table.add_column("Chapter")
    table.add_column("Status")
    completed = set(summary["completed_chapters"])
    for index, title in enumerate(summary["topics"]):
        if index in completed:
            status = "[green]done[/green]"
        elif index == summary["current_chapter_index"]:
            status = "[yellow]current[/yellow]"
        else:
            status = ""
        table.add_row(str(index), title, status)
    console.print(table)


def _save_speech(system: MentorSystem, text: str) -> None:
    try:
        pcm = system.speak(text)
    except MentorError as exc:
        console.print(f"[red]Speech unavailable:[/red] {exc}")
        return
    export_dir = system.settings.paths.export_dir
    export_dir.mkdir(parents=True, exist_ok=True)
    target = export_dir / "last_reply.wav"
    target.write_bytes(pcm_to_wav(pcm, system.settings.speech.sample_rate))
    console.print(f"[dim]Saved speech to {target}[/dim]")


def _report_artifact(system: MentorSystem, mode: ChatMode) -> None:
    try:
        result = system.generate_artifact(mode)
    except MentorError as exc:
        console.print(f"[red]Could not create artifact:[/red] {exc}")
        return
    if result is None:
        console.print("Chat a little more first: an artifact needs at least one exchange.")
        return
    console.print(f"[green]Saved artifact[/green] {result.artifact.title} ({result.artifact.id})")
    if result.local is not None:
        colour = "green" if result.local is WriteOutcome.SUCCESS else "red"
        console.print(f"Local sync: [{colour}]{result.local.value}[/{colour}]")
    if result.cloud is not None:
        colour = "green" if result.cloud is WriteOutcome.SUCCESS else "red"
        console.print(f"Gist sync: [{colour}]{result.cloud.value}[/{colour}]")
        if result.artifact.remote_url:
            console.print(result.artifact.remote_url)
    for error in result.errors:
        console.print(f"[dim]{error}[/dim]")


def _run_quiz(system: MentorSystem) -> None:
    try:
        attempt = system.start_quiz()
    except MentorError as exc:
        console.print(f"[red]{exc}[/red]")
        return
    while True:
        if attempt.status is QuizStatus.FAILED:
            console.print(f"[red]Quiz generation failed:[/red] {attempt.error}")
            if not typer.confirm("Retry?", default=True):
                return
            attempt.retry()
            continue

        console.print(f"\n[bold]Quiz: {attempt.chapter_title}[/bold]")
        answers = []
        for q_index, question in enumerate(attempt.quiz.questions, start=1):
            console.print(f"\n[bold]{q_index}.[/bold] {question.question}")
            for o_index, option in enumerate(question.options):
                console.print(f"   {chr(ord('A') + o_index)}. {option}")
            letters = [chr(ord("A") + idx) for idx in range(len(question.options))]
            choice = typer.prompt(f"Answer ({'/'.join(letters)})").strip().upper()
            while choice not in letters:
                choice = typer.prompt(f"Please pick one of {', '.join(letters)}").strip().upper()
            answers.append(letters.index(choice))

        evaluation = system.submit_quiz(answers)
        for result in evaluation.answers:
            mark = "[green]correct[/green]" if result.is_correct else "[red]incorrect[/red]"
            console.print(f"Q{result.index + 1}: {mark} (answer {chr(ord('A') + result.correct_index)})")
            if result.explanation:
                console.print(f"   [dim]{result.explanation}[/dim]")
        console.print(f"\nScore: {evaluation.correct_count}/{evaluation.total_questions}")
        if evaluation.passed:
            console.print("[green]Perfect score! Chapter complete.[/green]")
            return
        if not typer.confirm("Try a fresh quiz?", default=False):
            return
        attempt = system.retry_quiz()


def _chat_loop(system: MentorSystem, mode: ChatMode) -> None:
    view = AppMode.LEARN if mode is ChatMode.COACH else AppMode.FEYNMAN
    system.navigate(view)
    console.print("[dim]Commands: /artifact, /quiz, /speak, /exit[/dim]")

    def stream_printer(text: str) -> None:
        console.print(text, end="", soft_wrap=True, highlight=False)

    last_reply = ""
    while True:
        try:
            text = console.input("[bold cyan]you>[/bold cyan] ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        command = text.strip().lower()
        if command in ("/exit", "/quit"):
            break
        if command == "/artifact":
            _report_artifact(system, mode)
            continue
        if command == "/quiz":
            _run_quiz(system)
            system.navigate(view)
            continue
        if command == "/speak":
            if last_reply:
                _save_speech(system, last_reply)
            else:
                console.print("Nothing to read aloud yet.")
            continue

        console.print("[bold magenta]mentor>[/bold magenta] ", end="")
        try:
            reply = system.send_message(mode, text, on_delta=stream_printer)
        except KeyboardInterrupt:
            system.sessions[mode].cancel()
            system.save()
            console.print("\n[dim]Reply cancelled.[/dim]")
            continue
        console.print()
        if reply is None:
            continue
        history = system.history(mode)
        if history and history[-1].role == "system":
            console.print(f"[red]{history[-1].text}[/red]")
            continue
        last_reply = reply.text
        if system.state.auto_speak and last_reply:
            _save_speech(system, last_reply)
    system.navigate(AppMode.DASHBOARD)


@app.command()
def dashboard(config: Optional[Path] = ConfigOption):
    """Show level, coverage and the chapter list."""
    _print_dashboard(_load_system(config))


@app.command()
def learn(
    chapter: Optional[int] = typer.Argument(None, help="Chapter index to start; defaults to the current one."),
    config: Optional[Path] = ConfigOption,
):
    """
    Interactive lesson chat about a chapter.

    Streams mentor replies into the terminal. `/artifact` saves the session as a
    knowledge artifact, `/quiz` tests the current chapter and `/speak` saves the last
    reply as audio.
    """
    system = _load_system(config)
    index = chapter if chapter is not None else system.state.progress.current_chapter_index
    try:
        title = system.start_chapter(index)
    except MentorError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[bold]Chapter {index}: {title}[/bold]")
    _chat_loop(system, ChatMode.COACH)


@app.command()
def explain(config: Optional[Path] = ConfigOption):
    """Self-explanation chat: explain a concept and get it critiqued."""
    system = _load_system(config)
    if system.current_chapter_title:
        console.print(f"[bold]Explain something from: {system.current_chapter_title}[/bold]")
    _chat_loop(system, ChatMode.FEYNMAN)


@app.command()
def quiz(config: Optional[Path] = ConfigOption):
    """Take the quiz for the current chapter; a perfect score completes it."""
    _run_quiz(_load_system(config))


@app.command()
def artifacts(
    show: Optional[str] = typer.Option(None, "--show", help="Print the artifact with this id."),
    export: Optional[Path] = typer.Option(None, "--export", help="Write every artifact into this directory."),
    config: Optional[Path] = ConfigOption,
):
    """List, show or export saved knowledge artifacts."""
    system = _load_system(config)
    stored = system.state.artifacts
    if show:
        match = next((artifact for artifact in stored if artifact.id == show), None)
        if match is None:
            console.print(f"[red]No artifact with id {show}[/red]")
            raise typer.Exit(code=1)
        console.print(Markdown(render_artifact_markdown(match)))
        return
    if export:
        export.mkdir(parents=True, exist_ok=True)
        for artifact in stored:
            (export / artifact_filename(artifact)).write_text(render_artifact_markdown(artifact), encoding="utf-8")
        console.print(f"Exported {len(stored)} artifacts to {export}")
        return
    if not stored:
        console.print("No artifacts yet.")
        return
    table = Table(title="Artifacts")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Tags")
    table.add_column("Gist")
    for artifact in stored:
        table.add_row(artifact.id, artifact.title, ", ".join(artifact.tags), artifact.remote_url or "")
    console.print(table)


@app.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    config: Optional[Path] = ConfigOption,
):
    """Replace the curriculum with chapters extracted from a PDF, markdown or text file."""
    system = _load_system(config)
    try:
        topics = system.upload_curriculum(path.read_bytes(), guess_mime_type(path))
    except MentorError as exc:
        console.print(f"[red]Could not extract a curriculum:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Loaded {len(topics)} chapters.[/green] Progress and chat history were reset.")
    _print_dashboard(system)


@app.command("reset-curriculum")
def reset_curriculum(config: Optional[Path] = ConfigOption):
    """Return to the built-in Rust curriculum."""
    system = _load_system(config)
    system.reset_curriculum()
    console.print("Back to the default curriculum.")


@app.command("config")
def configure(
    provider: Optional[str] = typer.Option(None, help="gemini, openai, claude, grok or custom."),
    model: Optional[str] = typer.Option(None, help="Model identifier."),
    api_key: Optional[str] = typer.Option(None, help="API key; empty falls back to the environment."),
    base_url: Optional[str] = typer.Option(None, help="Endpoint for the custom provider."),
    config: Optional[Path] = ConfigOption,
):
    """Show or change the LLM provider settings."""
    system = _load_system(config)
    if any(value is not None for value in (provider, model, api_key, base_url)):
        try:
            system.update_llm_config(provider=provider, model=model, api_key=api_key, base_url=base_url)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    llm = system.state.llm
    console.print(f"Provider: {llm.provider}")
    console.print(f"Model: {llm.model or '(default)'}")
    console.print(f"API key: {'set' if llm.api_key else '(from environment)'}")
    if llm.base_url:
        console.print(f"Base URL: {llm.base_url}")


@app.command("sync-folder")
def sync_folder(
    path: Optional[Path] = typer.Argument(None, help="Folder to mirror artifacts into."),
    clear: bool = typer.Option(False, "--clear", help="Forget the selected folder."),
    auto: Optional[bool] = typer.Option(None, "--auto/--no-auto", help="Mirror new artifacts automatically."),
    push: bool = typer.Option(False, "--push", help="Write every stored artifact now."),
    config: Optional[Path] = ConfigOption,
):
    """Choose the local folder artifacts are mirrored into."""
    system = _load_system(config)
    if clear:
        system.clear_sync_folder()
        console.print("Sync folder cleared.")
    elif path is not None:
        if not system.set_sync_folder(path):
            console.print(f"[red]Cannot write to {path}[/red]")
            raise typer.Exit(code=1)
        console.print(f"Sync folder set to {system.sync_folder}")
    if auto is not None:
        system.set_auto_sync(auto)
        console.print(f"Auto-sync {'on' if auto else 'off'}.")
    if push:
        try:
            outcomes = system.sync_all_artifacts()
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
        ok = sum(1 for outcome in outcomes.values() if outcome is WriteOutcome.SUCCESS)
        console.print(f"Synced {ok}/{len(outcomes)} artifacts.")
    if not (clear or path or push or auto is not None):
        console.print(f"Folder: {system.sync_folder or '(none)'}   Auto-sync: {system.state.auto_sync}")


@app.command()
def gist(
    token: Optional[str] = typer.Option(None, help="GitHub token with gist scope."),
    enable: Optional[bool] = typer.Option(None, "--enable/--disable", help="Back up new artifacts to a gist."),
    config: Optional[Path] = ConfigOption,
):
    """Configure GitHub Gist backup of artifacts."""
    system = _load_system(config)
    system.configure_gist(token=token, enabled=enable)
    settings = system.state.gist
    console.print(f"Gist backup: {'enabled' if settings.enabled else 'disabled'}")
    console.print(f"Token: {'set' if settings.token else '(GITHUB_TOKEN from environment)'}")
    if settings.gist_id:
        console.print(f"Gist id: {settings.gist_id}")


@app.command()
def language(
    lang: Optional[str] = typer.Argument(None, help="en or zh; toggles when omitted."),
    config: Optional[Path] = ConfigOption,
):
    """Switch the display and conversation language."""
    system = _load_system(config)
    try:
        current = system.set_language(lang) if lang else system.toggle_language()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    console.print(f"Language: {current}")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
    config: Optional[Path] = ConfigOption,
):
    """Erase progress, artifacts, chat history and settings."""
    if not yes:
        typer.confirm("This deletes all saved mentor data. Continue?", abort=True)
    system = _load_system(config)
    system.reset_all()
    console.print("All data cleared.")


if __name__ == "__main__":
    app()
