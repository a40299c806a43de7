# kineticsub

A library for animated, word-timed subtitles. You can keyframe position, scale, rotation,
opacity, skew, 3D tilt (pitch and yaw), motion-path progress and masks. Easing curves shape
the motion between keyframes. Subtitles can be parented to other subtitles, can loop or
ping-pong their keyframes, and can use small expressions (`wiggle(freq,amp)`, `time*k`) and
deterministic bounce physics. The library bakes the result frame by frame into an Advanced
SubStation Alpha (`.ass`) script. It can then run `ffmpeg` on that script to produce a video
file or a zip archive of PNG frames.

## Installation

```
pip install kineticsub
```

The package itself needs only the standard library. Rendering needs an `ffmpeg` executable on
your `PATH`.

## Modules

- `kineticsub.animation`: `Easing`, `EasingKind`, `Keyframe`, `InterpolatedState` and
  `AnimationPreset`. It also has the easing functions `apply_ease`, `solve_cubic_bezier`,
  `ease_in_cubic`, `ease_out_cubic`, `ease_in_out`, `ease_bounce`, `ease_elastic` and
  `ease_back`.
- `kineticsub.sync_engine`: `SyncEngine` and `PlaybackState`, the playback clock. You can
  give it your own clock function.
- `kineticsub.subtitle`: `Subtitle` and its settings. These are `PathType`, `PathNode`,
  `MaskType`, `WordAnimation`, `WordAnimationKind`, `SubtitleWord`, `LoopMode`,
  `PhysicsSettings`, `Expressions`, `BloomSettings`, `GlitchSettings`, `StrokeProps`,
  `TextDeform`, `TextFillMode`, `BlendMode`, `TrackMatte` and `TextAlign`. The module also
  has `eval_expr`. `Subtitle.get_interpolated_state` resolves a clip's transform at a given
  time. `Subtitle.evaluate_path` gives the offset and heading along a motion path.
- `kineticsub.project`: `Project`, `MediaFile` and `RenderMode`. Projects load from and save
  to JSON with `to_json`/`from_json` and `to_dict`/`from_dict`.
- `kineticsub.ass`: `generate_ass_baked`, `build_static_ass_tags` and the helpers
  `format_time`, `color_to_ass`, `alpha_to_ass` and `color_to_ffmpeg_hex`.
- `kineticsub.render`: `build_ffmpeg_command`, `parse_progress_seconds` and `run_render`.
  `run_render` passes `RenderProgress`, `RenderDone` or `RenderError` messages to a callback.
- `kineticsub.transcription`: `decode_wav` reads 8- or 16-bit PCM WAV as 16 kHz samples and
  mixes stereo down to mono. It also has `resample_linear`, `filter_segments`, `RawWord`, and
  the message types `DownloadProgress`, `Transcribing`, `TranscriptionDone` and
  `TranscriptionError`.
- `kineticsub.media`: `words_to_subtitles` groups recognised words into one subtitle per word,
  or into phrases of up to six words. A phrase also breaks at a pause longer than 0.4 s and
  after a word ending in `.`, `?`, `!` or `,`. The module also has `TranscribeMode` and
  `MediaMixin`.
- `kineticsub.editor`: `EditorViewModel` is an editing session. It covers undo and redo,
  selection, moving and deleting subtitles, keyframe recording (`KeyframeMode`), playback,
  save and load, and background rendering.

## Example

```python
from kineticsub.animation import AnimationPreset
from kineticsub.ass import generate_ass_baked
from kineticsub.editor import EditorViewModel
from kineticsub.project import RenderMode

vm = EditorViewModel()
sub = vm.add_subtitle_at("Hello world", 0.0, 2.0)
sub.keyframes = AnimationPreset.FADE_IN.generate_keyframes(sub)

script = generate_ass_baked(vm.project, 30.0, 1920, 1080)
vm.save_project("hello.ksub")

vm.render_mode = RenderMode.VIDEO   # the default is a zipped PNG sequence
vm.start_render("hello.mp4")        # runs ffmpeg in a background thread
```

To follow a render, call `vm.poll_render()` repeatedly and read `vm.render_progress` and
`vm.render_status`.

For transcription, `vm.start_auto_transcription(media_id, transcriber)` starts a background
thread and calls `transcriber(audio_path, send)` in it. The transcriber reports its progress
and result through `send`. Call `vm.poll_whisper()` to apply one pending message at a time.
A `TranscriptionDone` message replaces the media file's subtitles with new ones, built from
the words it carries.

## Project files

Projects are saved as JSON. Some fields are required and loading fails with `ValueError` if
they are missing. For a subtitle these are its id, text, times, basic transform, font size,
bold/italic, colour and keyframes. Most other fields fall back to defaults when absent. Two
of them load with different values from the ones a new subtitle gets: a missing
`shadow_enabled` loads as off, and a missing `bg_box_padding` loads as 0.

## What this package does not do

- It has no graphical editor, no preview canvas and no command-line program. `EditorViewModel`
  holds the editing state for a user interface to drive.
- It does not play audio. `EditorViewModel` accepts an optional player object with `load`,
  `play_from`, `pause` and `is_playing` methods and keeps it in step with the playhead.
  Without one, playback advances only the clock.
- It has no speech-recognition model and downloads none. You supply the transcriber
  function. `filter_segments` turns a recogniser's `(text, start_cs, end_cs)` segments into
  words.
- It decodes only PCM WAV audio; other audio formats are not read.