"""Streamlit-based UI for the Rust mentor."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import streamlit as st

from rust_mentor.artifacts import artifact_filename, render_artifact_markdown
from rust_mentor.config.schema import SUPPORTED_PROVIDERS
from rust_mentor.data_models import ChatMode
from rust_mentor.errors import MentorError
from rust_mentor.ingestion import guess_mime_type
from rust_mentor.learning import QuizStatus
from rust_mentor.storage import WriteOutcome
from rust_mentor.system import AppMode, MentorSystem
from rust_mentor.utils.audio import pcm_to_wav

logger = logging.getLogger(__name__)

NAV_LABELS = {
    AppMode.DASHBOARD: "🏠 Dashboard",
    AppMode.LEARN: "🦀 Learn",
    AppMode.FEYNMAN: "🧠 Explain it back",
    AppMode.QUIZ: "📝 Quiz",
    AppMode.ARTIFACTS: "📚 Artifacts",
    AppMode.SETTINGS: "⚙️ Settings",
}


@st.cache_resource(show_spinner=False)
def load_system(config_path: Optional[str]) -> MentorSystem:
    return MentorSystem.from_config(config_path)


def _label_choice(index: int, text: str) -> str:
    return f"{chr(ord('A') + index)}. {text}"


def _play(system: MentorSystem, text: str) -> None:
    try:
        pcm = system.speak(text)
    except MentorError as exc:
        st.warning(f"Speech unavailable: {exc}")
        return
    st.audio(pcm_to_wav(pcm, system.settings.speech.sample_rate), format="audio/wav")


def render_sidebar(system: MentorSystem) -> AppMode:
    with st.sidebar:
        st.header("Rust Mentor")
        modes: List[AppMode] = list(NAV_LABELS)
        choice = st.radio(
            "Navigate",
            options=modes,
            index=modes.index(system.mode),
            format_func=lambda mode: NAV_LABELS[mode],
        )
        if choice is not system.mode:
            system.navigate(choice)

        summary = system.dashboard()
        st.progress(summary["coverage_percent"] / 100, text=f"Coverage {summary['coverage_percent']}%")
        st.caption(f"Level: {summary['level']}")
        other = "中文" if system.state.language == "en" else "English"
        if st.button(f"Switch to {other}"):
            system.toggle_language()
            st.rerun()
    return system.mode


def render_dashboard(system: MentorSystem) -> None:
    summary = system.dashboard()
    st.title("🦀 Your Rust journey")
    flash = st.session_state.pop("flash", None)
    if flash:
        st.balloons()
        st.success(flash)
    cols = st.columns(4)
    cols[0].metric("Coverage", f"{summary['coverage_percent']}%")
    cols[1].metric("Level", summary["level"])
    cols[2].metric("Artifacts", summary["artifact_count"])
    cols[3].metric("Sessions", summary["total_sessions"])

    if summary["custom_curriculum"]:
        st.info("Using your uploaded curriculum.")
    completed = set(summary["completed_chapters"])
    for index, title in enumerate(summary["topics"]):
        marker = "✅" if index in completed else ("👉" if index == summary["current_chapter_index"] else "▫️")
        left, right = st.columns([5, 1])
        left.markdown(f"{marker} **{index + 1}.** {title}")
        if right.button("Start", key=f"start_{index}"):
            system.start_chapter(index)
            st.rerun()

    with st.expander("Upload your own curriculum"):
        uploaded = st.file_uploader("PDF, markdown or text", type=["pdf", "md", "markdown", "txt"])
        if uploaded is not None and st.button("Extract chapters"):
            with st.spinner("Reading document..."):
                try:
                    topics = system.upload_curriculum(uploaded.getvalue(), guess_mime_type(Path(uploaded.name)))
                except MentorError as exc:
                    st.error(f"Could not extract a curriculum: {exc}")
                else:
                    st.success(f"Loaded {len(topics)} chapters.")
                    st.rerun()
        if summary["custom_curriculum"] and st.button("Back to default curriculum"):
            system.reset_curriculum()
            st.rerun()


def render_chat(system: MentorSystem, mode: ChatMode) -> None:
    title = system.current_chapter_title
    if mode is ChatMode.COACH:
        st.title(f"🦀 {title}" if title else "🦀 Mentor chat")
    else:
        st.title("🧠 Explain it back")
        st.caption("Explain a concept in your own words and the mentor will probe the gaps.")

    for message in system.history(mode):
        if message.role == "system":
            st.error(message.text)
            continue
        with st.chat_message("user" if message.role == "user" else "assistant"):
            st.markdown(message.text)

    actions = st.columns(3)
    if actions[0].button("💾 Save as artifact", key=f"artifact_{mode.value}"):
        with st.spinner("Summarizing session..."):
            try:
                result = system.generate_artifact(mode)
            except MentorError as exc:
                st.error(f"Could not create artifact: {exc}")
                result = None
            else:
                if result is None:
                    st.info("Chat a little more first.")
        if result is not None:
            st.success(f"Saved {result.artifact.title}")
            if result.local not in (None, WriteOutcome.SUCCESS):
                st.warning(f"Local sync: {result.local.value}")
            if result.cloud is WriteOutcome.ERROR:
                st.warning("Gist sync failed.")
    if mode is ChatMode.COACH and actions[1].button("📝 Take quiz", key="goto_quiz"):
        system.navigate(AppMode.QUIZ)
        st.rerun()

    prompt = st.chat_input("Ask the mentor..." if mode is ChatMode.COACH else "Explain a concept...")
    if not prompt:
        return
    with st.chat_message("user"):
        st.markdown(prompt)
    with st.chat_message("assistant"):
        placeholder = st.empty()
        buffer: List[str] = []

        def on_delta(delta: str) -> None:
            buffer.append(delta)
            placeholder.markdown("".join(buffer) + "▌")

        try:
            reply = system.send_message(mode, prompt, on_delta=on_delta)
        except MentorError as exc:
            st.error(str(exc))
            return
        placeholder.markdown("".join(buffer))
    if reply is not None and reply.text and system.state.auto_speak:
        _play(system, reply.text)
    st.rerun()


def render_quiz(system: MentorSystem) -> None:
    st.title("📝 Chapter quiz")
    attempt = system.quiz_attempt
    if attempt is None or attempt.chapter_title != system.current_chapter_title:
        if system.current_chapter_title is None:
            st.success("Every chapter is complete!")
            return
        with st.spinner("Generating quiz..."):
            attempt = system.start_quiz()

    st.subheader(attempt.chapter_title)
    if attempt.status is QuizStatus.FAILED:
        st.error(f"Quiz generation failed: {attempt.error}")
        if st.button("Retry"):
            with st.spinner("Generating quiz..."):
                system.retry_quiz()
            st.rerun()
        return

    submitted = attempt.status is QuizStatus.SUBMITTED
    for idx, question in enumerate(attempt.quiz.questions):
        st.markdown(f"**Q{idx + 1}. {question.question}**")
        selection = st.radio(
            "Select an option",
            options=list(range(len(question.options))),
            index=attempt.selections[idx],
            format_func=lambda choice, q=question: _label_choice(choice, q.options[choice]),
            key=f"quiz_{id(attempt.quiz)}_{idx}",
            disabled=submitted,
        )
        if selection is not None and not submitted:
            attempt.select(idx, selection)
        if submitted and attempt.evaluation is not None:
            result = attempt.evaluation.answers[idx]
            if result.is_correct:
                st.success("Correct")
            else:
                st.error(f"Incorrect: answer {_label_choice(result.correct_index, question.options[result.correct_index])}")
            if result.explanation:
                st.caption(result.explanation)
        st.markdown("---")

    if not submitted:
        if st.button("Submit answers", disabled=not attempt.can_submit):
            evaluation = system.submit_quiz(list(attempt.selections))
            if evaluation.passed:
                # passing moves on to the next chapter and back to the dashboard
                st.session_state.flash = f"Perfect score on {attempt.chapter_title}! Chapter complete."
            st.rerun()
        return

    st.metric("Score", f"{attempt.score}/{len(attempt.quiz.questions)}")
    if st.button("Try a fresh quiz"):
        with st.spinner("Generating quiz..."):
            system.retry_quiz()
        st.rerun()


def render_artifacts(system: MentorSystem) -> None:
    st.title("📚 Knowledge artifacts")
    if not system.state.artifacts:
        st.info("Save a chat session to create your first artifact.")
        return
    for artifact in system.state.artifacts:
        with st.expander(f"{artifact.title}  ·  {', '.join(artifact.tags)}"):
            st.markdown(artifact.content)
            cols = st.columns(2)
            cols[0].download_button(
                "Download markdown",
                data=render_artifact_markdown(artifact),
                file_name=artifact_filename(artifact),
                mime="text/markdown",
                key=f"download_{artifact.id}",
            )
            if artifact.remote_url:
                cols[1].markdown(f"[View gist]({artifact.remote_url})")


def render_settings(system: MentorSystem) -> None:
    st.title("⚙️ Settings")
    llm = system.state.llm

    with st.form("llm_settings"):
        st.subheader("Model provider")
        provider = st.selectbox("Provider", SUPPORTED_PROVIDERS, index=SUPPORTED_PROVIDERS.index(llm.provider))
        model = st.text_input("Model", value=llm.model, placeholder="Leave empty for the provider default")
        api_key = st.text_input("API key", value=llm.api_key, type="password")
        base_url = st.text_input("Base URL (custom provider)", value=llm.base_url or "")
        if st.form_submit_button("Save provider"):
            system.update_llm_config(provider=provider, model=model, api_key=api_key, base_url=base_url or None)
            st.success("Provider saved.")

    with st.form("gist_settings"):
        st.subheader("GitHub Gist backup")
        enabled = st.checkbox("Back up new artifacts", value=system.state.gist.enabled)
        token = st.text_input("GitHub token", value=system.state.gist.token, type="password")
        if st.form_submit_button("Save gist settings"):
            system.configure_gist(token=token, enabled=enabled)
            st.success("Gist settings saved.")

    st.subheader("Local folder sync")
    folder = st.text_input("Folder", value=str(system.sync_folder or ""))
    cols = st.columns(3)
    if cols[0].button("Use folder") and folder.strip():
        if system.set_sync_folder(folder.strip()):
            st.success(f"Syncing to {system.sync_folder}")
        else:
            st.error("That folder is not writable.")
    if cols[1].button("Forget folder"):
        system.clear_sync_folder()
        st.rerun()
    if cols[2].button("Sync all now", disabled=system.sync_folder is None):
        outcomes = system.sync_all_artifacts()
        ok = sum(1 for outcome in outcomes.values() if outcome is WriteOutcome.SUCCESS)
        st.info(f"Synced {ok}/{len(outcomes)} artifacts.")

    auto_sync = st.toggle("Auto-sync new artifacts", value=system.state.auto_sync)
    if auto_sync != system.state.auto_sync:
        system.set_auto_sync(auto_sync)
    auto_speak = st.toggle("Read replies aloud", value=system.state.auto_speak)
    if auto_speak != system.state.auto_speak:
        system.set_auto_speak(auto_speak)

    st.subheader("Danger zone")
    if st.button("Erase all data", type="primary"):
        system.reset_all()
        st.rerun()


def main() -> None:
    st.set_page_config(page_title="Rust Mentor", page_icon="🦀", layout="wide")
    try:
        system = load_system(os.getenv("RUST_MENTOR_CONFIG"))
    except (FileNotFoundError, ValueError) as exc:
        st.error(f"Configuration error: {exc}")
        st.stop()

    mode = render_sidebar(system)
    if mode is AppMode.LEARN:
        render_chat(system, ChatMode.COACH)
    elif mode is AppMode.FEYNMAN:
        render_chat(system, ChatMode.FEYNMAN)
    elif mode is AppMode.QUIZ:
        render_quiz(system)
    elif mode is AppMode.ARTIFACTS:
        render_artifacts(system)
    elif mode is AppMode.SETTINGS:
        render_settings(system)
    else:
        render_dashboard(system)


if __name__ == "__main__":
    main()
