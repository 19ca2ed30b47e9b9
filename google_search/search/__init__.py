"""
google-search search module.

Main entry point:
    SearchOrchestrator - search(), execute_search(), fetch_result_page_markup()

Extraction:
    ContentExtractor / extract_from_html() - selector-table result extraction
"""
