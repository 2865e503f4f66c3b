"""
Entry point for running timetabler as a module.

Usage:
    python -m timetabler generate school.json --class C001 --term FIRST
    python -m timetabler generate-bulk school.json --term FIRST --save
    python -m timetabler verify school.json --term FIRST
"""

from timetabler.cli import main

if __name__ == "__main__":
    main()
