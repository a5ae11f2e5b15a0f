#!/usr/bin/env python3
"""
Startup script for submitting pending timesheet entries.
"""
from timesheet_submit.submit_timesheet import main

if __name__ == "__main__":
    main()
