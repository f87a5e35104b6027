# vision_avatar/apps/__init__.py
"""Vision Avatar applications"""
