"""Application entry point for the videocropper UI."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence, TYPE_CHECKING

import gi

gi.require_version("Gtk", "3.0")
gi.require_version("Gdk", "3.0")
gi.require_version("GdkPixbuf", "2.0")
gi.require_version("Gst", "1.0")

try:
    gi.require_version("GstPbutils", "1.0")
except (ValueError, ImportError):
    _GST_PBUTILS_AVAILABLE = False
else:
    _GST_PBUTILS_AVAILABLE = True

from gi.repository import Gdk, GdkPixbuf, GLib, Gst, Gtk, cairo

if _GST_PBUTILS_AVAILABLE:
    try:
        from gi.repository import GstPbutils  # type: ignore
    except ImportError:  # pragma: no cover - depends on system packages
        GstPbutils = None  # type: ignore[assignment]
        _GST_PBUTILS_AVAILABLE = False
else:
    GstPbutils = None  # type: ignore[assignment]

if TYPE_CHECKING:
    from gi.repository import GstPbutils as GstPbutilsTypes  # pragma: no cover
else:
    GstPbutilsTypes = object

from .controller import (
    AspectRatioChange,
    CropRegionController,
    DisplayResize,
    PointerDown,
    PointerMove,
    PointerUp,
    Remove,
    Start,
    TimeAdvance,
)
from .export import write_metadata_file
from .geometry import AspectRatio, CropRegion, DisplayBox, fit_display_rect
from .metadata import MetadataRecorder
from .preview import PreviewRenderer
from .scheduling import GLibScheduler

PROGRESS_INTERVAL_MS = 200
PLAYBACK_RATES: tuple[float, ...] = (0.5, 1.0, 1.5, 2.0)
_FRAME_CAPS = "video/x-raw,format=RGB,pixel-aspect-ratio=1/1"


def _structure_fraction(structure: Gst.Structure, field: str) -> tuple[int, int] | None:
    if not structure.has_field(field):
        return None
    success, numerator, denominator = structure.get_fraction(field)
    if success:
        return int(numerator), int(denominator)
    return None


class PlaybinMediaHost:
    """Exposes a GStreamer playbin and the widget it is shown in to the crop core."""

    def __init__(self, player: Gst.Element, area: Gtk.Widget) -> None:
        self._player = player
        self._area = area
        self._playback_rate = 1.0
        self._source_size: tuple[float, float] | None = None
        self._discoverer: GstPbutilsTypes.Discoverer | None = None  # type: ignore[attr-defined]
        self._discoverer_failed = not _GST_PBUTILS_AVAILABLE

    @property
    def current_time(self) -> float:
        success, position_ns = self._player.query_position(Gst.Format.TIME)
        if not success or position_ns < 0:
            return 0.0
        return position_ns / Gst.SECOND

    @property
    def volume(self) -> float:
        return max(0.0, min(1.0, float(self._player.get_property("volume"))))

    @property
    def playback_rate(self) -> float:
        return self._playback_rate

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        self._playback_rate = rate

    def reset(self, video_file: Path) -> None:
        self._source_size = self._probe_video_size(video_file)

    def source_size(self) -> tuple[float, float] | None:
        if self._source_size is None:
            self._source_size = self._source_size_from_pad()
        return self._source_size

    def display_box(self) -> DisplayBox:
        allocation = self._area.get_allocation()
        return fit_display_rect(self.source_size(), allocation.width, allocation.height)

    def current_frame(self) -> GdkPixbuf.Pixbuf | None:
        sample = self._player.emit("convert-sample", Gst.Caps.from_string(_FRAME_CAPS))
        if sample is None:
            return None
        caps = sample.get_caps()
        buffer = sample.get_buffer()
        if caps is None or buffer is None or caps.get_size() == 0:
            return None
        structure = caps.get_structure(0)
        width = structure.get_value("width")
        height = structure.get_value("height")
        if not isinstance(width, int) or not isinstance(height, int):
            return None
        success, map_info = buffer.map(Gst.MapFlags.READ)
        if not success:
            return None
        try:
            data = GLib.Bytes.new(bytes(map_info.data))
        finally:
            buffer.unmap(map_info)
        # Raw RGB rows are padded to a multiple of four bytes.
        stride = (width * 3 + 3) & ~3
        return GdkPixbuf.Pixbuf.new_from_bytes(
            data, GdkPixbuf.Colorspace.RGB, False, 8, width, height, stride
        )

    def _ensure_discoverer(self) -> GstPbutilsTypes.Discoverer | None:  # type: ignore[attr-defined]
        if self._discoverer is not None or self._discoverer_failed:
            return self._discoverer
        try:
            self._discoverer = GstPbutils.Discoverer.new(5 * Gst.SECOND)  # type: ignore[union-attr]
        except GLib.Error as exc:
            print(
                f"Failed to initialise GStreamer discoverer: {exc.message}",
                file=sys.stderr,
            )
            self._discoverer_failed = True
            self._discoverer = None
        return self._discoverer

    def _probe_video_size(self, video_file: Path) -> tuple[float, float] | None:
        discoverer = self._ensure_discoverer()
        if discoverer is None or GstPbutils is None:
            return None
        try:
            info = discoverer.discover_uri(Gst.filename_to_uri(str(video_file.resolve())))
        except GLib.Error as exc:
            print(
                f"Unable to inspect video metadata for '{video_file.name}': {exc.message}",
                file=sys.stderr,
            )
            return None
        for stream in info.get_video_streams():
            if not isinstance(stream, GstPbutils.DiscovererVideoInfo):
                continue
            width = float(stream.get_width())
            height = float(stream.get_height())
            if width <= 0.0 or height <= 0.0:
                continue
            par_num = stream.get_par_num()
            par_den = stream.get_par_den()
            if par_num > 0 and par_den > 0:
                width *= par_num / par_den
            return width, height
        return None

    def _source_size_from_pad(self) -> tuple[float, float] | None:
        pad = self._player.emit("get-video-pad", 0)
        if pad is None:
            return None
        caps = pad.get_current_caps()
        if caps is None or caps.get_size() == 0:
            return None
        structure = caps.get_structure(0)
        width = structure.get_value("width")
        height = structure.get_value("height")
        if not isinstance(width, int) or not isinstance(height, int):
            return None
        if width <= 0 or height <= 0:
            return None
        width_f = float(width)
        par = _structure_fraction(structure, "pixel-aspect-ratio")
        if par is not None and par[0] > 0 and par[1] > 0:
            width_f *= par[0] / par[1]
        return width_f, float(height)


class DrawingAreaPreviewSurface:
    """Preview surface backed by a Gtk.DrawingArea painted with cairo."""

    def __init__(self, area: Gtk.DrawingArea) -> None:
        self._area = area
        self._frame: GdkPixbuf.Pixbuf | None = None
        self._source_rect: CropRegion | None = None
        self._dest_rect: CropRegion | None = None
        area.connect("draw", self._on_draw)

    @property
    def available(self) -> bool:
        return self._area.get_realized()

    def set_size(self, width: int, height: int) -> None:
        self._area.set_size_request(width, height)

    def draw(self, frame: GdkPixbuf.Pixbuf, source_rect: CropRegion, dest_rect: CropRegion) -> None:
        self._frame = frame
        self._source_rect = source_rect
        self._dest_rect = dest_rect
        self._area.queue_draw()

    def _on_draw(self, _widget: Gtk.DrawingArea, cr: cairo.Context) -> bool:
        frame, src, dest = self._frame, self._source_rect, self._dest_rect
        if frame is None or src is None or dest is None or src.is_empty or dest.is_empty:
            return False
        cr.rectangle(dest.x, dest.y, dest.width, dest.height)
        cr.clip()
        cr.translate(dest.x, dest.y)
        cr.scale(dest.width / src.width, dest.height / src.height)
        Gdk.cairo_set_source_pixbuf(cr, frame, -src.x, -src.y)
        cr.paint()
        return False


def _create_video_sink() -> tuple[Gst.Element, Gtk.Widget]:
    """Choose a GTK sink, preferring one that keeps frames on the GPU."""

    failure_reasons: list[str] = []

    gtkgl = Gst.ElementFactory.make("gtkglsink", "gtkglsink")
    glbin = Gst.ElementFactory.make("glsinkbin", "gtkglsink_bin")
    if gtkgl is None or glbin is None:
        failure_reasons.append(
            "gtkglsink/glsinkbin plugins are unavailable. Install the GStreamer GL and gtk plugins."
        )
    else:
        widget = getattr(gtkgl.props, "widget", None)
        if isinstance(widget, Gtk.Widget):
            glbin.set_property("sink", gtkgl)
            return glbin, widget
        failure_reasons.append("gtkglsink did not expose a Gtk.Widget.")

    gtksink = Gst.ElementFactory.make("gtksink", "gtksink")
    if gtksink is not None:
        widget = getattr(gtksink.props, "widget", None)
        if isinstance(widget, Gtk.Widget):
            reason_text = "\n".join(f"- {reason}" for reason in failure_reasons)
            print(
                "Using CPU-bound gtksink for video playback.\n"
                "Diagnostic hints:\n"
                f"{reason_text}",
                file=sys.stderr,
            )
            return gtksink, widget

    hint = "; ".join(failure_reasons) if failure_reasons else "unknown reason"
    raise RuntimeError(
        "No suitable GTK video sink is available. Install the GStreamer GTK plugins."
        f" ({hint})"
    )


class CropperWindow(Gtk.ApplicationWindow):
    """Video player with a draggable crop region and a live preview of it."""

    def __init__(
        self,
        app: "VideoCropperApplication",
        video_file: Path,
        aspect_ratio: AspectRatio,
        output_dir: Path,
    ) -> None:
        super().__init__(application=app)
        self.set_title(f"videocropper - {video_file.name}")
        self.set_default_size(1200, 600)

        self._output_dir = output_dir

        self._player = Gst.ElementFactory.make("playbin", "player")
        if self._player is None:
            raise RuntimeError("Unable to create GStreamer playbin element.")
        sink, video_widget = _create_video_sink()
        self._player.set_property("video-sink", sink)
        video_widget.set_hexpand(True)
        video_widget.set_vexpand(True)

        video_overlay = Gtk.Overlay()
        video_overlay.set_hexpand(True)
        video_overlay.set_vexpand(True)
        video_overlay.add(video_widget)

        crop_overlay = Gtk.DrawingArea()
        crop_overlay.set_hexpand(True)
        crop_overlay.set_vexpand(True)
        crop_overlay.set_app_paintable(True)
        crop_overlay.connect("draw", self._on_crop_overlay_draw)
        crop_overlay.add_events(
            Gdk.EventMask.BUTTON_PRESS_MASK
            | Gdk.EventMask.BUTTON_RELEASE_MASK
            | Gdk.EventMask.POINTER_MOTION_MASK
        )
        crop_overlay.connect("button-press-event", self._on_crop_button_press)
        crop_overlay.connect("button-release-event", self._on_crop_button_release)
        crop_overlay.connect("motion-notify-event", self._on_crop_motion)
        video_overlay.add_overlay(crop_overlay)
        video_overlay.set_overlay_pass_through(crop_overlay, False)

        preview_area = Gtk.DrawingArea()
        preview_area.set_halign(Gtk.Align.START)
        preview_area.set_valign(Gtk.Align.START)
        preview_area.set_no_show_all(True)

        media_row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)
        media_row.pack_start(video_overlay, True, True, 0)
        media_row.pack_start(preview_area, False, False, 0)

        play_pause_button = Gtk.Button.new_from_icon_name(
            "media-playback-pause", Gtk.IconSize.BUTTON
        )
        play_pause_button.connect("clicked", self._on_play_pause_clicked)

        progress_adjustment = Gtk.Adjustment(0.0, 0.0, 1.0, 0.1, 1.0, 0.0)
        progress_scale = Gtk.Scale.new(Gtk.Orientation.HORIZONTAL, progress_adjustment)
        progress_scale.set_hexpand(True)
        progress_scale.set_draw_value(False)
        progress_scale.connect("value-changed", self._on_progress_changed)

        volume_button = Gtk.VolumeButton()
        volume_button.set_value(1.0)
        volume_button.connect("value-changed", self._on_volume_changed)

        rate_combo = Gtk.ComboBoxText()
        for rate in PLAYBACK_RATES:
            rate_combo.append(str(rate), f"{rate:g}x")
        rate_combo.set_active_id(str(1.0))
        rate_combo.connect("changed", self._on_rate_changed)

        playback_row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=6)
        playback_row.pack_start(play_pause_button, False, False, 0)
        playback_row.pack_start(progress_scale, True, True, 0)
        playback_row.pack_start(volume_button, False, False, 0)
        playback_row.pack_start(rate_combo, False, False, 0)

        aspect_combo = Gtk.ComboBoxText()
        for label in AspectRatio.labels():
            aspect_combo.append(label, label)
        aspect_combo.set_active_id(aspect_ratio.label)
        aspect_combo.connect("changed", self._on_aspect_ratio_changed)

        start_button = Gtk.Button(label="Start Cropper")
        start_button.connect("clicked", self._on_start_clicked)
        remove_button = Gtk.Button(label="Remove Cropper")
        remove_button.connect("clicked", self._on_remove_clicked)
        export_button = Gtk.Button(label="Export Metadata")
        export_button.connect("clicked", self._on_export_clicked)

        crop_row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=6)
        crop_row.pack_start(Gtk.Label(label="Aspect Ratio:"), False, False, 0)
        crop_row.pack_start(aspect_combo, False, False, 0)
        crop_row.pack_start(start_button, False, False, 0)
        crop_row.pack_start(remove_button, False, False, 0)
        crop_row.pack_end(export_button, False, False, 0)

        container = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        container.set_border_width(12)
        container.pack_start(media_row, True, True, 0)
        container.pack_start(playback_row, False, False, 0)
        container.pack_start(crop_row, False, False, 0)
        self.add(container)
        self.show_all()

        self.connect("destroy", self._on_destroy)

        bus = self._player.get_bus()
        bus.add_signal_watch()
        bus.connect("message", self._on_bus_message)

        self._crop_overlay = crop_overlay
        self._preview_area = preview_area
        self._play_pause_button = play_pause_button
        self._progress_adjustment = progress_adjustment
        self._start_button = start_button
        self._remove_button = remove_button
        self._duration_ns = 0
        self._last_position_ns: int | None = None
        self._updating_progress = False
        self._is_playing = True

        self._host = PlaybinMediaHost(self._player, crop_overlay)
        self._recorder = MetadataRecorder(self._host)
        self._controller = CropRegionController(
            self._host,
            self._recorder,
            GLibScheduler(),
            preview=PreviewRenderer(self._host, DrawingAreaPreviewSurface(preview_area)),
            aspect_ratio=aspect_ratio,
            on_change=self._on_crop_changed,
        )
        self._update_crop_buttons()
        crop_overlay.connect("size-allocate", self._on_crop_overlay_size_allocate)

        self._load_video(video_file)
        self._progress_update_id: int | None = GLib.timeout_add(
            PROGRESS_INTERVAL_MS, self._update_progress
        )

    def _load_video(self, video_file: Path) -> None:
        self._host.reset(video_file)
        self._player.set_state(Gst.State.READY)
        self._player.set_property("uri", Gst.filename_to_uri(str(video_file.resolve())))
        self._player.set_state(Gst.State.PLAYING)
        self._is_playing = True
        self._update_play_pause_icon()

    def _on_destroy(self, *_args: object) -> None:
        self._controller.teardown()
        self._player.set_state(Gst.State.NULL)
        if self._progress_update_id is not None:
            GLib.source_remove(self._progress_update_id)
            self._progress_update_id = None

    def _on_bus_message(self, _bus: Gst.Bus, message: Gst.Message) -> None:
        message_type = message.type
        if message_type == Gst.MessageType.ERROR:
            err, debug = message.parse_error()
            print(f"GStreamer error: {err.message}", file=sys.stderr)
            if debug:
                print(f"Debug details: {debug}", file=sys.stderr)
            self._player.set_state(Gst.State.NULL)
        elif message_type == Gst.MessageType.EOS:
            self._seek(0)

    def _seek(self, position_ns: int) -> None:
        self._player.seek(
            self._host.playback_rate,
            Gst.Format.TIME,
            Gst.SeekFlags.FLUSH | Gst.SeekFlags.ACCURATE,
            Gst.SeekType.SET,
            position_ns,
            Gst.SeekType.NONE,
            -1,
        )

    def _on_play_pause_clicked(self, _button: Gtk.Button) -> None:
        target_state = Gst.State.PAUSED if self._is_playing else Gst.State.PLAYING
        self._player.set_state(target_state)
        self._is_playing = target_state == Gst.State.PLAYING
        self._update_play_pause_icon()

    def _update_play_pause_icon(self) -> None:
        icon_name = "media-playback-pause" if self._is_playing else "media-playback-start"
        self._play_pause_button.set_image(Gtk.Image.new_from_icon_name(icon_name, Gtk.IconSize.BUTTON))

    def _on_volume_changed(self, _button: Gtk.VolumeButton, value: float) -> None:
        self._player.set_property("volume", max(0.0, min(1.0, value)))

    def _on_rate_changed(self, combo: Gtk.ComboBoxText) -> None:
        active = combo.get_active_id()
        if active is None:
            return
        self._host.playback_rate = float(active)
        success, position_ns = self._player.query_position(Gst.Format.TIME)
        self._seek(position_ns if success and position_ns >= 0 else 0)

    def _on_progress_changed(self, _scale: Gtk.Scale) -> None:
        if self._updating_progress:
            return
        self._seek(int(self._progress_adjustment.get_value() * Gst.SECOND))

    def _update_progress(self) -> bool:
        success, duration_ns = self._player.query_duration(Gst.Format.TIME)
        if success and duration_ns > 0 and duration_ns != self._duration_ns:
            self._duration_ns = duration_ns
            self._progress_adjustment.set_upper(duration_ns / Gst.SECOND)

        success, position_ns = self._player.query_position(Gst.Format.TIME)
        if success and self._duration_ns > 0:
            self._updating_progress = True
            self._progress_adjustment.set_value(position_ns / Gst.SECOND)
            self._updating_progress = False
        self._controller.dispatch(DisplayResize())
        if success and position_ns != self._last_position_ns:
            self._last_position_ns = position_ns
            self._controller.dispatch(TimeAdvance())

        self._crop_overlay.queue_draw()
        return True

    def _on_aspect_ratio_changed(self, combo: Gtk.ComboBoxText) -> None:
        active = combo.get_active_id()
        if active is None:
            return
        self._controller.dispatch(AspectRatioChange(AspectRatio.from_label(active)))

    def _on_start_clicked(self, _button: Gtk.Button) -> None:
        self._controller.dispatch(Start())

    def _on_remove_clicked(self, _button: Gtk.Button) -> None:
        self._controller.dispatch(Remove())

    def _on_export_clicked(self, _button: Gtk.Button) -> None:
        samples = self._recorder.export()
        try:
            path = write_metadata_file(samples, self._output_dir)
        except OSError as exc:
            print(f"Failed to write metadata: {exc}", file=sys.stderr)
            return
        print(f"Wrote {len(samples)} samples to {path}")

    def _on_crop_changed(self, controller: CropRegionController) -> None:
        self._preview_area.set_visible(controller.visible)
        self._update_crop_buttons()
        self._crop_overlay.queue_draw()

    def _update_crop_buttons(self) -> None:
        visible = self._controller.visible
        self._start_button.set_sensitive(not visible)
        self._remove_button.set_sensitive(visible)

    def _on_crop_overlay_size_allocate(self, _widget: Gtk.Widget, _allocation: Gdk.Rectangle) -> None:
        self._controller.dispatch(DisplayResize())

    def _on_crop_overlay_draw(self, _widget: Gtk.DrawingArea, cr: cairo.Context) -> bool:
        if not self._controller.visible:
            return False
        region = self._controller.region
        if region.is_empty:
            return False
        box = self._host.display_box()
        cr.set_source_rgba(0.0, 1.0, 1.0, 0.2)
        cr.rectangle(box.x + region.x, box.y + region.y, region.width, region.height)
        cr.fill_preserve()
        cr.set_source_rgba(0.0, 1.0, 1.0, 0.8)
        cr.set_line_width(2.0)
        cr.stroke()
        return False

    def _on_crop_button_press(self, _widget: Gtk.Widget, event: Gdk.EventButton) -> bool:
        if event.button != 1:
            return False
        self._controller.dispatch(PointerDown(event.x, event.y))
        return True

    def _on_crop_motion(self, _widget: Gtk.Widget, event: Gdk.EventMotion) -> bool:
        self._controller.dispatch(PointerMove(event.x, event.y))
        return True

    def _on_crop_button_release(self, _widget: Gtk.Widget, event: Gdk.EventButton) -> bool:
        if event.button != 1:
            return False
        self._controller.dispatch(PointerUp(event.x, event.y))
        return True


class VideoCropperApplication(Gtk.Application):
    """Gtk.Application wrapper for the cropper window."""

    def __init__(self, video_file: Path, aspect_ratio: AspectRatio, output_dir: Path) -> None:
        super().__init__(application_id="dev.videocropper.app")
        Gst.init(None)
        self._video_file = video_file
        self._aspect_ratio = aspect_ratio
        self._output_dir = output_dir
        self._window: CropperWindow | None = None

    def do_activate(self) -> None:  # type: ignore[override]
        if self._window is None:
            self._window = CropperWindow(
                self, self._video_file, self._aspect_ratio, self._output_dir
            )
        self._window.present()

    def do_shutdown(self) -> None:  # type: ignore[override]
        if self._window is not None:
            self._window.destroy()
            self._window = None
        Gtk.Application.do_shutdown(self)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crop a playing video and record the crop position over time."
    )
    parser.add_argument("video", type=Path, help="Video file to open.")
    parser.add_argument(
        "--aspect-ratio",
        choices=AspectRatio.labels(),
        default=AspectRatio.PORTRAIT_9_16.label,
        help="Initial crop aspect ratio (default: 9:16).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path.cwd(),
        help="Folder the metadata file is exported to (defaults to the current working directory).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    video_file: Path = args.video
    output_dir: Path = args.output_dir
    if not video_file.is_file():
        raise SystemExit(f"Video '{video_file}' does not exist or is not a file.")
    if not output_dir.is_dir():
        raise SystemExit(f"Folder '{output_dir}' does not exist or is not a directory.")

    app = VideoCropperApplication(
        video_file, AspectRatio.from_label(args.aspect_ratio), output_dir
    )
    return app.run(sys.argv[:1])


if __name__ == "__main__":
    raise SystemExit(main())
