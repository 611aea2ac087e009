"""Browser-side building blocks of a capture run (Playwright sync API).

``session`` owns the browser lifecycle, ``navigation`` loads and restores
the target, ``identity`` resolves the egress IP, ``region`` finds the main
content, ``ranking`` orders candidate elements and ``interaction`` clicks
them and classifies what happened.
"""
