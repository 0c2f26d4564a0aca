# main.py
import os, sys

def main():
    if os.geteuid() != 0:
        print("ERROR: The installer must be run as root.", file=sys.stderr)
        sys.exit(1)
    from app import InstallerApp
    result = InstallerApp().run()
    if result == "state-error":
        sys.exit(2)
    # "reboot": the host is already going down
    sys.exit(0)

if __name__ == "__main__":
    main()
