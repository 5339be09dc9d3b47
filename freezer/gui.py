# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""Windowed freezer.

Tk owns the main thread. The session runs on an asyncio event loop in a daemon thread, and
everything the session reports is passed back to Tk through a queue that the window polls.
"""

import asyncio
import logging
import queue
import sys
import threading
import tkinter as tk
from tkinter import messagebox, ttk
from . import controls
from .app import FreezerApp, configure_logging
from .config import build_arg_parser, load_config
from .models import TelemetrySettings

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 100


def start_background_loop():
    """Create a new event loop running forever on a daemon thread"""
    logger.debug("Creating background event loop")
    loop = asyncio.new_event_loop()
    loop_thread = threading.Thread(target=loop.run_forever, name="freezer-loop")
    loop_thread.daemon = True
    loop_thread.start()
    return loop


class FreezerWindow(object):
    def __init__(self, root: tk.Tk, app: FreezerApp, loop: asyncio.AbstractEventLoop):
        self.root = root
        self.app = app
        self.session = app.session
        self.loop = loop
        self._ui_queue = queue.Queue()
        self._closing = False
        self._destroyed = False

        settings = self.session.telemetry
        self.interval_var = tk.StringVar(root, value=_format_number(settings.interval))
        self.low_var = tk.StringVar(root, value=_format_number(settings.temperature_low))
        self.high_var = tk.StringVar(root, value=_format_number(settings.temperature_high))
        self.overheat_var = tk.BooleanVar(root, value=settings.overheat)
        self.status_var = tk.StringVar(root, value="Disconnected")
        self.telemetry_var = tk.StringVar(root, value="No telemetry sent yet")

        self.root.title(app.title)
        self._build_layout()

        # Session handlers run on the background loop
        self.session.on_state_change = lambda session: self._ui_queue.put((self._render, ()))
        self.session.on_telemetry = lambda *args: self._ui_queue.put((self._show_telemetry, args))

        self.root.protocol("WM_DELETE_WINDOW", self.on_close)
        self._render()
        self.root.after(POLL_INTERVAL_MS, self._drain_ui_queue)

    def _build_layout(self):
        frame = ttk.Frame(self.root, padding=16)
        frame.pack(fill="both", expand=True)

        form = ttk.Frame(frame)
        form.pack(fill="x")
        self.widgets = {}
        rows = [
            (controls.INTERVAL, "Telemetry interval (s):", self.interval_var),
            (controls.TEMPERATURE_LOW, "Temperature low (°C):", self.low_var),
            (controls.TEMPERATURE_HIGH, "Temperature high (°C):", self.high_var),
        ]
        for row, (name, label, variable) in enumerate(rows):
            ttk.Label(form, text=label).grid(row=row, column=0, sticky="w", pady=2)
            entry = ttk.Entry(form, textvariable=variable, width=10)
            entry.grid(row=row, column=1, sticky="w", padx=(8, 0), pady=2)
            self.widgets[name] = entry

        overheat = ttk.Checkbutton(
            frame, text="Overheat", variable=self.overheat_var, command=self.on_overheat
        )
        overheat.pack(anchor="w", pady=(8, 0))
        self.widgets[controls.OVERHEAT] = overheat

        buttons = ttk.Frame(frame)
        buttons.pack(fill="x", pady=(12, 8))
        connect = ttk.Button(buttons, text="Connect", command=self.on_connect)
        connect.pack(side=tk.LEFT)
        disconnect = ttk.Button(buttons, text="Disconnect", command=self.on_disconnect)
        disconnect.pack(side=tk.LEFT, padx=(8, 0))
        self.widgets[controls.CONNECT] = connect
        self.widgets[controls.DISCONNECT] = disconnect

        ttk.Label(frame, textvariable=self.status_var, foreground="blue").pack(anchor="w")
        ttk.Label(frame, textvariable=self.telemetry_var).pack(anchor="w")

    def _render(self):
        enabled = controls.control_states(self.session.state, busy=self.session.busy)
        for name, widget in self.widgets.items():
            widget.state(["!disabled"] if enabled[name] else ["disabled"])

        self.root.config(cursor="watch" if self.session.busy else "")
        if self.session.busy:
            self.status_var.set("Working...")
        elif self.session.connected:
            self.status_var.set("Connected to {}".format(self.session.endpoint.assigned_hub))
        else:
            self.status_var.set("Disconnected")

    def _show_telemetry(self, reading, payload, error):
        if error is not None:
            self.telemetry_var.set("Telemetry failed: {}".format(error))
        else:
            self.telemetry_var.set(
                "Telemetry: Sent - {} (sent={}, failed={})".format(
                    payload, self.session.sent_count, self.session.failed_count
                )
            )

    def _drain_ui_queue(self):
        while not self._destroyed:
            try:
                fn, args = self._ui_queue.get_nowait()
            except queue.Empty:
                break
            fn(*args)
        if not self._closing:
            self.root.after(POLL_INTERVAL_MS, self._drain_ui_queue)

    def _submit(self, coro, on_done):
        """Run a session coroutine on the background loop and hand its Result to on_done in Tk"""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)

        def _done(f):
            self._ui_queue.put((on_done, (f,)))

        future.add_done_callback(_done)

    def _read_settings(self):
        try:
            return TelemetrySettings(
                interval=float(self.interval_var.get()),
                temperature_low=float(self.low_var.get()),
                temperature_high=float(self.high_var.get()),
                fixed_temperature=self.session.telemetry.fixed_temperature,
                overheat=self.overheat_var.get(),
            )
        except ValueError:
            messagebox.showerror(self.app.title, "Interval and temperatures must be numbers.")
            return None

    def on_connect(self):
        settings = self._read_settings()
        if settings is None:
            return
        result = self.session.update_telemetry_settings(settings)
        if not result:
            messagebox.showerror(self.app.title, str(result.error))
            return
        self._submit(self.session.connect(), self._on_connect_done)

    def _on_connect_done(self, future):
        if self._closing:
            return
        self._render()
        if future.cancelled():
            return
        if future.exception() is not None:
            logger.error("Connect raised unexpectedly", exc_info=future.exception())
            messagebox.showerror(self.app.title, "Connect failed: {}".format(future.exception()))
            return
        result = future.result()
        if not result:
            messagebox.showerror(self.app.title, "Connect failed: {}".format(result.error))

    def on_disconnect(self):
        self._submit(self.session.disconnect(), self._on_disconnect_done)

    def _on_disconnect_done(self, future):
        if self._closing:
            self._destroy()
            return
        self._render()
        if future.cancelled():
            return
        if future.exception() is not None:
            logger.error("Disconnect raised unexpectedly", exc_info=future.exception())
        elif not future.result():
            messagebox.showerror(
                self.app.title, "Disconnect failed: {}".format(future.result().error)
            )

    def on_overheat(self):
        overheat = self.overheat_var.get()
        self.loop.call_soon_threadsafe(self.session.set_overheat, overheat)

    def on_close(self):
        if self._closing:
            return
        self._closing = True
        self._drain_until_closed()
        self._close_when_idle()

    def _close_when_idle(self):
        """Destroy the window once the session is disconnected, disconnecting it first if needed"""
        if self._destroyed:
            return
        if self.session.busy:
            # A connect or disconnect is still running on the background loop
            self.root.after(POLL_INTERVAL_MS, self._close_when_idle)
        elif self.session.connected:
            # Destroyed once the disconnect completes
            self._submit(self.session.disconnect(), self._on_disconnect_done)
        else:
            self._destroy()

    def _drain_until_closed(self):
        self._drain_ui_queue()
        if not self._destroyed:
            self.root.after(POLL_INTERVAL_MS, self._drain_until_closed)

    def _destroy(self):
        if self._destroyed:
            return
        self._destroyed = True
        self.loop.call_soon_threadsafe(self.loop.stop)
        try:
            self.root.destroy()
        except tk.TclError:
            pass


def _format_number(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def main(argv=None) -> int:
    parser = build_arg_parser(prog="freezer-gui")
    args = parser.parse_args(argv)

    result = load_config(args)
    if not result:
        print(str(result.error), file=sys.stderr)
        return 1
    config = result.value

    configure_logging(config.log_level)
    app = FreezerApp(config)
    loop = start_background_loop()

    root = tk.Tk()
    FreezerWindow(root, app, loop)
    root.mainloop()
    return 0


def entry_point():
    sys.exit(main())
