"""ToolSuite backend: accounts, tool usage analytics, ad slots and SEO feeds."""
