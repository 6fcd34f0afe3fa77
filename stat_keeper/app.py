import customtkinter as ctk

from .config import APP_TITLE, APPDATA_DIR, CHARACTER_SHEET_KEY, DATA_DIR, UI_REFRESH_MS
from .utils import ensure_dir, format_countdown
from .logging_setup import log_tk_callback_errors, setup_logger
from .storage import KeyValueStore
from .character_store import CharacterStore, validate_activity_input
from .decay_scheduler import DecayScheduler
from .tray import TrayController


ctk.set_appearance_mode("Dark")
ctk.set_default_color_theme("blue")


class StatKeeperApp:
    def __init__(self):
        ensure_dir(APPDATA_DIR)

        self.logger = setup_logger()
        self.logger.info("App start")

        self.root = ctk.CTk()
        self.root.title(APP_TITLE)
        self.root.geometry("460x720")
        self.root.minsize(420, 600)
        self.root.protocol("WM_DELETE_WINDOW", self.hide_to_tray)
        log_tk_callback_errors(self.root, self.logger)

        self.tray = TrayController(
            title=APP_TITLE,
            on_show=self.show_from_tray,
            on_quit=self.quit_app,
            logger=self.logger,
        )
        self.tray.ensure_running()

        storage = KeyValueStore(DATA_DIR, self.logger)
        self.store = CharacterStore(storage, self.logger)
        self.store.load()

        self.decay = DecayScheduler(self.store, storage, self.logger, notifier=self.tray)
        self.decay.load()

        self._refresh_after_id = None

        self._build_ui()
        self.store.add_listener(self._on_store_event)
        self._refresh_sheet()
        self._refresh_log_choices()

        self.decay.start(self.root)
        self._schedule_refresh()

    # UI
    def _build_ui(self) -> None:
        self.header = ctk.CTkLabel(self.root, text=APP_TITLE, font=("Roboto", 26, "bold"))
        self.header.pack(pady=(18, 8))

        self.sheet_frame = ctk.CTkScrollableFrame(self.root)
        self.sheet_frame.pack(padx=18, pady=(6, 10), fill="both", expand=True)

        self.frame_log = ctk.CTkFrame(self.root)
        self.frame_log.pack(padx=18, pady=(6, 14), fill="x")

        ctk.CTkLabel(self.frame_log, text="Log activity", font=("Arial", 16, "bold")).grid(
            row=0, column=0, columnspan=2, sticky="w", padx=12, pady=(10, 4)
        )

        self.category_var = ctk.StringVar(value="")
        self.category_menu = ctk.CTkOptionMenu(
            self.frame_log, variable=self.category_var, values=[""], command=self._on_category_chosen
        )
        self.category_menu.grid(row=1, column=0, sticky="ew", padx=12, pady=4)

        self.stat_var = ctk.StringVar(value="")
        self.stat_menu = ctk.CTkOptionMenu(self.frame_log, variable=self.stat_var, values=[""])
        self.stat_menu.grid(row=1, column=1, sticky="ew", padx=12, pady=4)

        self.activity_entry = ctk.CTkEntry(self.frame_log, placeholder_text="What did you do?")
        self.activity_entry.grid(row=2, column=0, sticky="ew", padx=12, pady=4)

        self.points_entry = ctk.CTkEntry(self.frame_log, width=90, justify="center", placeholder_text="points")
        self.points_entry.grid(row=2, column=1, sticky="ew", padx=12, pady=4)

        self.log_btn = ctk.CTkButton(self.frame_log, text="Log", command=self.log_activity)
        self.log_btn.grid(row=3, column=0, columnspan=2, sticky="ew", padx=12, pady=(6, 4))

        self.error_label = ctk.CTkLabel(self.frame_log, text="", text_color="#e74c3c")
        self.error_label.grid(row=4, column=0, columnspan=2, sticky="w", padx=12, pady=(0, 8))

        self.frame_log.grid_columnconfigure(0, weight=1)
        self.frame_log.grid_columnconfigure(1, weight=1)

    def _refresh_sheet(self) -> None:
        for child in self.sheet_frame.winfo_children():
            child.destroy()

        sheet = self.store.snapshot()[CHARACTER_SHEET_KEY]
        for row, (category_id, category) in enumerate(sheet["categories"].items()):
            box = ctk.CTkFrame(self.sheet_frame, fg_color=category["gradient"][0])
            box.grid(row=row, column=0, sticky="ew", padx=6, pady=6)
            box.grid_columnconfigure(0, weight=1)

            title = f"{category.get('icon', '')} {category.get('name', category_id)}"
            ctk.CTkLabel(box, text=title, font=("Arial", 16, "bold")).grid(
                row=0, column=0, sticky="w", padx=10, pady=(8, 2)
            )
            ctk.CTkLabel(box, text=f"Score {category['score']}", font=("Arial", 16, "bold")).grid(
                row=0, column=1, sticky="e", padx=10, pady=(8, 2)
            )

            for i, stat in enumerate(category["stats"], start=1):
                countdown = self.decay.get_time_until_next_decay(category_id, stat["name"])
                decay_text = f"decays in {format_countdown(countdown)}" if countdown is not None else ""
                ctk.CTkLabel(box, text=f"{stat['name']}: {stat['value']}", anchor="w").grid(
                    row=i, column=0, sticky="w", padx=16, pady=1
                )
                ctk.CTkLabel(box, text=decay_text, text_color="gray90").grid(
                    row=i, column=1, sticky="e", padx=10, pady=1
                )
        self.sheet_frame.grid_columnconfigure(0, weight=1)

    def _refresh_log_choices(self) -> None:
        names = {self.store.category_name(cid) or cid: cid for cid in self.store.category_ids()}
        self._category_lookup = names
        labels = list(names) or [""]
        self.category_menu.configure(values=labels)
        if self.category_var.get() not in names:
            self.category_var.set(labels[0])
        self._on_category_chosen(self.category_var.get())

    def _on_category_chosen(self, label: str) -> None:
        category = self.store.get_category(self._category_lookup.get(label, ""))
        stats = [s["name"] for s in category["stats"]] if category else []
        self.stat_menu.configure(values=stats or [""])
        if self.stat_var.get() not in stats:
            self.stat_var.set(stats[0] if stats else "")

    def _on_store_event(self, event: str, payload) -> None:
        if event == "categories":
            self._refresh_log_choices()
        self._refresh_sheet()

    def _schedule_refresh(self) -> None:
        def _do():
            self._refresh_sheet()
            self._schedule_refresh()

        self._refresh_after_id = self.root.after(UI_REFRESH_MS, _do)

    # Actions
    def log_activity(self) -> None:
        description = self.activity_entry.get().strip()
        stat = self.stat_var.get()
        category_id = self._category_lookup.get(self.category_var.get())
        try:
            points = int(self.points_entry.get().strip())
        except ValueError:
            points = 0

        errors = validate_activity_input(description, [stat] if stat else [], points)
        if category_id is None:
            errors["category"] = "Please choose a category"
        if errors:
            self.error_label.configure(text=" / ".join(errors.values()))
            return

        self.error_label.configure(text="")
        self.store.log_activity(description, category_id, stat, points)
        self.activity_entry.delete(0, "end")
        self.points_entry.delete(0, "end")

    # Tray
    def hide_to_tray(self) -> None:
        self.logger.info("Hide to tray")
        self.tray.ensure_running()
        self.root.withdraw()

    def show_from_tray(self) -> None:
        self.logger.info("Show from tray")

        def _do():
            try:
                self.root.deiconify()
                self.root.lift()
                self.root.focus_force()
            except Exception:
                self.logger.exception("Show from tray failed")

        self.root.after(0, _do)

    def quit_app(self) -> None:
        self.logger.info("Quit requested")

        def _do():
            self.decay.stop()
            if self._refresh_after_id is not None:
                self.root.after_cancel(self._refresh_after_id)
            self.store.save()
            self.decay.save()
            self.tray.stop()
            self.root.destroy()
            self.logger.info("App stopped")

        self.root.after(0, _do)

    def run(self) -> None:
        self.root.mainloop()


def main() -> None:
    StatKeeperApp().run()
