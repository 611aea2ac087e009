"""Run orchestration: single runs, sequential batches and debug scans."""
