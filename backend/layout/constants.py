"""
Layout constants for the workflow chart.
Node x is the card's left edge; child groups are centered on the parent's x.
"""

# Card width of one node
NODE_WIDTH = 200

# Horizontal gap between sibling cards, and between groups sharing a depth
NODE_SPACING = 50

# Vertical distance between a parent row and its children row
VERTICAL_STEP = 150
