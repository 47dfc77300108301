"""flowrun.core — execution state model: transition tables, log, tracker, replay."""
