"""
Loaders for the inputs of a run: the local image folder, the entry
catalog (remote or mirrored) and the local asset descriptor mirror.
"""
