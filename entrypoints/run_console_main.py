import runpy
import traceback


def main():
    try:
        # Equivalent to: python -m alarm_console.dev.run_console
        runpy.run_module("alarm_console.dev.run_console", run_name="__main__")
    except Exception:
        traceback.print_exc()
        input("\nPress Enter to exit...")


if __name__ == "__main__":
    main()
