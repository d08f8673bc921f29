"""
Gmail -> WordPress pipeline entry point.
Delegates to gmail_ingest.pipeline for all logic.
Run: python gmail_wp_pipeline.py run|authorize
"""

from gmail_ingest.pipeline import main

if __name__ == "__main__":
    main()
