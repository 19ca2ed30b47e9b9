"""
Browser-side components: runtime handle, stealth, identity and session
persistence, challenge detection and execution mode control.
"""
