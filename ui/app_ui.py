from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, Dict, Generator, List, Optional

import gradio as gr
from pydantic import ValidationError

from core.error_handling import FrameEnhancerError, MediaError, SelectionCapacityError
from core.events import EnhancementEvent, ExtractionEvent
from core.export import default_export_path, export_enhanced_zip
from core.models import GenderFilter, RunState
from core.progress import ProgressSnapshot
from core.utils import format_bytes, format_time, image_from_bytes
from ui.gallery_utils import build_enhanced_gallery_items, build_frame_gallery_items, selection_summary

if TYPE_CHECKING:
    from core.config import Config
    from core.logger import AppLogger
    from core.session import ProcessingSession


class AppUI:
    """
    Main UI class for the Frame Enhancer application.

    Wires Gradio components to a ProcessingSession. Long-running operations run
    in a single background worker while this class polls the session snapshot.
    """

    GENDER_CHOICES: List[Any] = [
        ("Any face", GenderFilter.ALL.value),
        ("Male", GenderFilter.MALE.value),
        ("Female", GenderFilter.FEMALE.value),
    ]
    LOG_LINES_SHOWN = 200

    def __init__(self, config: "Config", logger: "AppLogger", session: "ProcessingSession", poll_interval: float = 0.2):
        """
        Initialize the AppUI.

        Args:
            config: Application configuration.
            logger: Application logger.
            session: The processing session backing this UI.
            poll_interval: Seconds between progress polls while a task runs.
        """
        self.config = config
        self.logger = logger
        self.session = session
        self.poll_interval = poll_interval
        self.components: Dict[str, gr.components.Component] = {}

    def build_ui(self) -> gr.Blocks:
        """Constructs the entire Gradio UI layout."""
        with gr.Blocks(title="Frame Enhancer") as demo:
            self._build_header()
            self._build_source_section()
            self._build_frames_section()
            self._build_results_section()
            self._build_footer()
            self._create_event_handlers()
        return demo

    def _create_component(self, name: str, comp_type: str, kwargs: dict) -> gr.components.Component:
        """Creates a Gradio component and registers it under ``name``."""
        comp_map = {
            "button": gr.Button,
            "checkbox": gr.Checkbox,
            "file": gr.File,
            "gallery": gr.Gallery,
            "image": gr.Image,
            "markdown": gr.Markdown,
            "number": gr.Number,
            "radio": gr.Radio,
            "textbox": gr.Textbox,
            "video": gr.Video,
        }
        self.components[name] = comp_map[comp_type](**kwargs)
        return self.components[name]

    def _build_header(self):
        gr.Markdown("# 🎞️ Frame Enhancer\nExtract face frames from a video and restore them.")

    def _build_source_section(self):
        with gr.Row():
            with gr.Column(scale=2):
                self._create_component(
                    "video_input", "video", {"label": "Video", "sources": ["upload"], "interactive": True}
                )
                self._create_component("video_info", "markdown", {"value": "Upload a video to begin."})
            with gr.Column(scale=1):
                with gr.Row():
                    self._create_component("start_time_input", "number", {"label": "Start (s)", "value": 0, "minimum": 0})
                    self._create_component("end_time_input", "number", {"label": "End (s)", "value": None, "minimum": 0})
                self._create_component(
                    "fps_input",
                    "radio",
                    {
                        "label": "Frames per second",
                        "choices": [str(f) for f in self.config.fps_choices],
                        "value": str(self.config.default_fps),
                    },
                )
                self._create_component(
                    "gender_input",
                    "radio",
                    {
                        "label": "Face filter",
                        "choices": self.GENDER_CHOICES,
                        "value": self.config.default_gender_filter,
                    },
                )
                with gr.Row():
                    self._create_component("extract_button", "button", {"value": "🔍 Extract Frames", "variant": "primary"})
                    self._create_component("cancel_button", "button", {"value": "⏹️ Cancel", "interactive": False})
                    self._create_component("change_video_button", "button", {"value": "🔄 Change Video"})
        with gr.Row():
            with gr.Column(scale=2):
                self._create_component("unified_status", "markdown", {"value": ""})
            with gr.Column(scale=1):
                self._create_component(
                    "preview_image", "image", {"label": "Current frame", "type": "pil", "interactive": False, "height": 240}
                )

    def _build_frames_section(self):
        gr.Markdown(f"## 🖼️ Found Frames\nClick a frame to select it. Up to {self.config.max_selected} frames.")
        self._create_component("selection_info", "markdown", {"value": selection_summary(0, self.config.max_selected)})
        with gr.Row():
            self._create_component("select_all_button", "button", {"value": "✅ Select All"})
            self._create_component("deselect_all_button", "button", {"value": "❎ Deselect All"})
        self._create_component(
            "frames_gallery",
            "gallery",
            {"label": "Accepted frames", "columns": 6, "height": "auto", "allow_preview": False},
        )
        with gr.Accordion("✂️ Crop last clicked frame", open=False):
            self._create_component("crop_target_info", "markdown", {"value": "Click a frame first."})
            with gr.Row():
                self._create_component("crop_left", "number", {"label": "Left", "value": 0, "precision": 0})
                self._create_component("crop_top", "number", {"label": "Top", "value": 0, "precision": 0})
                self._create_component("crop_width", "number", {"label": "Width", "value": 0, "precision": 0})
                self._create_component("crop_height", "number", {"label": "Height", "value": 0, "precision": 0})
            self._create_component("crop_button", "button", {"value": "✂️ Apply Crop"})

    def _build_results_section(self):
        gr.Markdown("## ✨ Enhancement")
        with gr.Row():
            self._create_component(
                "colorize_input", "checkbox", {"label": "Colorize / enrich colors", "value": self.config.default_colorize}
            )
            self._create_component("enhance_button", "button", {"value": "✨ Enhance Selected", "variant": "primary"})
        self._create_component(
            "results_gallery", "gallery", {"label": "Enhanced images", "columns": 4, "height": "auto"}
        )
        with gr.Row():
            self._create_component("export_button", "button", {"value": "📦 Download All (.zip)"})
            self._create_component("zip_file", "file", {"label": "Archive", "visible": False, "interactive": False})

    def _build_footer(self):
        with gr.Accordion("📋 Logs", open=False):
            self._create_component("unified_log", "textbox", {"lines": 12, "max_lines": 20, "show_label": False})
            self._create_component("refresh_logs_button", "button", {"value": "🔄 Refresh"})

    def _create_event_handlers(self):
        """Sets up all event listeners."""
        self.logger.info("Initializing Gradio event handlers...", component="ui")
        c = self.components
        c["crop_position_state"] = gr.State(None)

        c["video_input"].change(
            self.on_video_change,
            inputs=[c["video_input"]],
            outputs=[
                c["video_info"],
                c["start_time_input"],
                c["end_time_input"],
                c["frames_gallery"],
                c["results_gallery"],
                c["selection_info"],
                c["unified_status"],
            ],
        )
        c["change_video_button"].click(lambda: None, [], [c["video_input"]])

        run_outputs = [
            c["unified_status"],
            c["preview_image"],
            c["cancel_button"],
            c["extract_button"],
            c["enhance_button"],
            c["frames_gallery"],
            c["results_gallery"],
            c["selection_info"],
            c["unified_log"],
        ]
        c["extract_button"].click(
            self.run_extraction_wrapper,
            inputs=[c["video_input"], c["start_time_input"], c["end_time_input"], c["fps_input"], c["gender_input"]],
            outputs=run_outputs,
        )
        c["enhance_button"].click(self.run_enhancement_wrapper, inputs=[c["colorize_input"]], outputs=run_outputs)
        c["cancel_button"].click(self.session.cancel, [], [])

        selection_outputs = [c["frames_gallery"], c["selection_info"]]
        c["frames_gallery"].select(
            self.on_frame_select,
            inputs=[],
            outputs=selection_outputs + [c["crop_position_state"], c["crop_target_info"]],
        )
        c["select_all_button"].click(self.on_select_all, [], selection_outputs)
        c["deselect_all_button"].click(self.on_deselect_all, [], selection_outputs)
        c["crop_button"].click(
            self.on_crop,
            inputs=[c["crop_position_state"], c["crop_left"], c["crop_top"], c["crop_width"], c["crop_height"]],
            outputs=[c["frames_gallery"], c["crop_target_info"]],
        )
        c["export_button"].click(self.on_export, [], [c["zip_file"]])
        c["refresh_logs_button"].click(self.render_logs, [], [c["unified_log"]])

    def render_logs(self) -> str:
        return "\n".join(self.logger.recent_lines(self.LOG_LINES_SHOWN))

    def _frames_gallery(self) -> list:
        return build_frame_gallery_items(self.session.accepted_frames, self.session.selection)

    def _selection_info(self) -> str:
        return selection_summary(len(self.session.selection), self.config.max_selected)

    def on_video_change(self, video_path: Optional[str]) -> tuple:
        """Loads a newly uploaded video, or clears the session when the video is removed."""
        cleared = ([], [], selection_summary(0, self.config.max_selected))
        if not video_path:
            self.session.reset()
            return ("Upload a video to begin.", 0, None) + cleared + ("",)
        try:
            item = self.session.load_video(video_path)
            with self.session.extraction.media_opener(item.path) as media:
                duration, width, height = media.duration, media.width, media.height
        except (MediaError, OSError) as e:
            self.logger.error(f"Could not read uploaded video: {e}", component="ui")
            return ("⚠️ Could not read this video.", 0, None) + cleared + ("",)
        except FrameEnhancerError as e:
            return (f"⚠️ {e}", gr.update(), gr.update()) + cleared + ("",)
        info = (
            f"**{item.name}** · {format_bytes(item.size_bytes)} · {format_time(duration)} · {width}×{height}"
        )
        return (info, 0, round(duration, 2)) + cleared + ("",)

    def _status_markdown(self, snap: ProgressSnapshot, op_name: str) -> str:
        status = f"**{op_name}:** {snap.message}\n- Progress: {snap.current}/{snap.total}\n- Found: {snap.found}"
        if snap.eta_seconds is not None:
            status += f"\n- ETA: {snap.eta_formatted}"
        return status

    def _run_task_with_progress(
        self,
        task_func: Callable,
        on_done: Callable[[Any], dict],
        op_name: str,
        progress: Optional[Callable],
        *args,
    ) -> Generator[dict, None, None]:
        """
        Executes a session operation in a background worker while streaming progress updates.

        Yields:
            Dictionary of UI updates.
        """
        c = self.components
        yield {
            c["cancel_button"]: gr.update(interactive=True),
            c["extract_button"]: gr.update(interactive=False),
            c["enhance_button"]: gr.update(interactive=False),
            c["unified_status"]: f"🚀 **Starting: {op_name}...**",
        }
        idle = {
            c["cancel_button"]: gr.update(interactive=False),
            c["extract_button"]: gr.update(interactive=True),
            c["enhance_button"]: gr.update(interactive=True),
        }

        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(task_func, *args)
            last_snap = None
            while not future.done():
                snap = self.session.snapshot()
                if snap != last_snap:
                    if progress is not None:
                        progress(snap.fraction, desc=f"{snap.message} ({snap.current}/{snap.total})")
                    update = {c["unified_status"]: self._status_markdown(snap, op_name)}
                    if snap.preview is not None and (last_snap is None or snap.preview is not last_snap.preview):
                        update[c["preview_image"]] = image_from_bytes(snap.preview.image)
                    last_snap = snap
                    yield update
                time.sleep(self.poll_interval)

            try:
                result = future.result()
            except (ValueError, FrameEnhancerError) as e:
                yield {**idle, c["unified_status"]: f"⚠️ {e}", c["unified_log"]: self.render_logs()}
                return
            except Exception as e:
                self.logger.error(f"Task failed: {e}", component="ui", exc_info=True)
                yield {**idle, c["unified_status"]: f"❌ **{op_name} failed.**", c["unified_log"]: self.render_logs()}
                return

        yield {**idle, **on_done(result), c["unified_log"]: self.render_logs()}

    def run_extraction_wrapper(self, video_path, start_time, end_time, fps, gender, progress=gr.Progress()):
        try:
            event = ExtractionEvent(
                video_path=video_path or "",
                start_time=start_time or 0.0,
                end_time=end_time,
                fps=int(fps),
                gender=gender,
            )
        except (ValidationError, TypeError, ValueError) as e:
            msg = e.errors()[0]["msg"] if isinstance(e, ValidationError) else str(e)
            yield {self.components["unified_status"]: f"⚠️ {msg}"}
            return
        yield from self._run_task_with_progress(
            self.session.start_extraction, self._on_extraction_done, "Extraction", progress, event
        )

    def _on_extraction_done(self, result) -> dict:
        c = self.components
        prefix = "❌" if self.session.state == RunState.ERROR else "✅"
        return {
            c["unified_status"]: f"{prefix} **{result.message}**",
            c["frames_gallery"]: gr.update(value=self._frames_gallery()),
            c["results_gallery"]: gr.update(value=[]),
            c["selection_info"]: self._selection_info(),
        }

    def run_enhancement_wrapper(self, colorize, progress=gr.Progress()):
        if not self.session.selected_frames():
            yield {self.components["unified_status"]: "⚠️ Select at least one frame to enhance."}
            return
        event = EnhancementEvent(colorize=bool(colorize))
        yield from self._run_task_with_progress(
            self.session.start_enhancement, self._on_enhancement_done, "Enhancement", progress, event
        )

    def _on_enhancement_done(self, result) -> dict:
        c = self.components
        return {
            c["unified_status"]: f"✅ **{result.message}**",
            c["results_gallery"]: gr.update(value=build_enhanced_gallery_items(result.images)),
        }

    def on_frame_select(self, evt: gr.SelectData) -> tuple:
        position = evt.index if isinstance(evt.index, int) else evt.index[0]
        frames = self.session.accepted_frames
        if not 0 <= position < len(frames):
            return gr.update(), gr.update(), None, "Click a frame first."
        frame = frames[position]
        try:
            self.session.toggle_frame(frame.timestamp)
        except SelectionCapacityError as e:
            gr.Warning(str(e))
        target = f"Cropping frame at **{format_time(frame.timestamp)}** ({frame.timestamp:.2f}s)"
        return gr.update(value=self._frames_gallery()), self._selection_info(), position, target

    def on_select_all(self) -> tuple:
        self.session.select_all()
        return gr.update(value=self._frames_gallery()), self._selection_info()

    def on_deselect_all(self) -> tuple:
        self.session.deselect_all()
        return gr.update(value=self._frames_gallery()), self._selection_info()

    def on_crop(self, position, left, top, width, height) -> tuple:
        if position is None:
            return gr.update(), "Click a frame first."
        try:
            frame = self.session.crop_frame(int(position), (int(left or 0), int(top or 0), int(width or 0), int(height or 0)))
        except (ValueError, IndexError, FrameEnhancerError) as e:
            return gr.update(), f"⚠️ {e}"
        return gr.update(value=self._frames_gallery()), f"Cropped frame at {frame.timestamp:.2f}s."

    def on_export(self):
        images = self.session.enhanced_images
        if not images:
            gr.Warning("No enhanced images to download.")
            return gr.update(visible=False)
        video_name = self.session.video.name if self.session.video else None
        path = export_enhanced_zip(images, default_export_path(self.config, video_name), logger=self.logger)
        return gr.update(value=str(path), visible=True)
