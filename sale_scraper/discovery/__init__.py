"""
Discovery - finding product data outside the product page itself.

- shopping: shopping-index product resolver (name, image and list price by
  search rather than by page parsing)
"""
