"""KBIndex Meta information."""

__title__ = "kbindex"
__description__ = (
    "Hybrid knowledge retrieval and graph construction engine: "
    "score fusion, PageIndex tree search and LLM triple extraction."
)
__version__ = "0.4.0"
__author__ = "Jesus Lara"
__author_email__ = "jesuslarag@gmail.com"
__license__ = "MIT"
__copyright__ = "Copyright (c) 2020-2024 Jesus Lara"
