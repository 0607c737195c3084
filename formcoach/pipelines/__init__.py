"""
Real-time coaching pipeline and FastAPI backend.

Per frame:
    Stage 1: Joint smoothing
    Stage 2: Rep cycle detection on wrist height
    Stage 3: Form rules, pace tracking and reference-pose cross-check
    Stage 4: Speech synthesis and queued playback
"""
