"""
Test Suite for the Form Submission Functions

- unit/: Tests for individual shared modules
- integration/: Function entry points driven through main()
- conftest.py: In-memory sheet, recording mailer, fake Jira, factories
"""
