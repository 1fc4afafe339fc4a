"""LLM task presets.

A preset frames every chunk for one kind of request: a system prompt, a user
prompt (a Jinja2 template filled with the chunk's statistics and code) and
generation hints for the model that will read it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from repo_chunker.config import CodeBlockStyle, TaskKind


class TaskPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TaskKind
    name: str
    description: str
    system_prompt: str
    user_prompt_template: str
    suggested_model: str
    max_tokens_hint: int = Field(ge=1)
    temperature_hint: float = Field(ge=0.0, le=2.0)
    include_metadata: bool = True
    include_structure: bool = True
    code_block_style: CodeBlockStyle = CodeBlockStyle.MARKDOWN

    @property
    def id(self) -> str:
        return self.kind.value


TASK_PRESETS: dict[TaskKind, TaskPreset] = {
    TaskKind.CODE_REVIEW: TaskPreset(
        kind=TaskKind.CODE_REVIEW,
        name="Code Review",
        description="Comprehensive code review with best practices",
        system_prompt="""\
You are an expert code reviewer with deep knowledge across multiple programming languages and paradigms.
Your task is to perform a thorough code review focusing on:
- Code quality and maintainability
- Performance issues and optimizations
- Security vulnerabilities
- Best practices and design patterns
- Potential bugs and edge cases
- Documentation completeness
- Test coverage gaps

Provide actionable feedback with specific examples and suggestions.""",
        user_prompt_template="""\
Please review this codebase and provide detailed feedback.

**Project Overview:**
- Total Files: {{ file_count }}
- Total Lines: {{ total_lines }}
- Languages: {{ languages }}
- Estimated Tokens: {{ total_tokens }}

**Review Focus Areas:**
1. Architecture and design patterns
2. Code quality and maintainability
3. Performance bottlenecks
4. Security concerns
5. Error handling
6. Testing strategy

**Codebase:**
{{ code_content }}

Please structure your review with:
1. Executive Summary
2. Critical Issues
3. Important Issues
4. Suggestions
5. Positive Aspects
6. Recommendations""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=150_000,
        temperature_hint=0.3,
    ),
    TaskKind.DOCUMENTATION: TaskPreset(
        kind=TaskKind.DOCUMENTATION,
        name="Documentation Generation",
        description="Generate comprehensive project documentation",
        system_prompt="""\
You are a technical documentation expert. Generate clear, comprehensive documentation that includes:
- Project overview and purpose
- Architecture explanation
- API documentation
- Usage examples
- Setup instructions
- Contributing guidelines

Write in a clear, professional style suitable for both beginners and experienced developers.""",
        user_prompt_template="""\
Generate comprehensive documentation for this project.

**Project Information:**
- Files: {{ file_count }}
- Languages: {{ languages }}
- Total Code: {{ total_lines }} lines

**Documentation Requirements:**
1. README.md with:
   - Project description
   - Features
   - Installation
   - Quick start
   - Usage examples
2. API Documentation
3. Architecture overview
4. Development guide

**Codebase:**
{{ code_content }}

Generate structured markdown documentation ready to use.""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=100_000,
        temperature_hint=0.5,
    ),
    TaskKind.REFACTORING: TaskPreset(
        kind=TaskKind.REFACTORING,
        name="Refactoring Suggestions",
        description="Get refactoring recommendations to improve code quality",
        system_prompt="""\
You are a code refactoring expert. Analyze the code and suggest:
- Code duplication removal
- Design pattern applications
- Improved abstractions
- Better naming conventions
- Simplified complex logic
- Enhanced modularity

Provide concrete before/after examples for each suggestion.""",
        user_prompt_template="""\
Analyze this codebase and provide refactoring recommendations.

**Codebase Stats:**
- Files: {{ file_count }}
- Total Lines: {{ total_lines }}
- Languages: {{ languages }}

**Refactoring Goals:**
1. Reduce code duplication
2. Improve readability
3. Enhance maintainability
4. Apply design patterns where appropriate
5. Simplify complex functions

**Code:**
{{ code_content }}

For each refactoring suggestion, provide:
- Current issue
- Proposed solution with code example
- Benefits
- Implementation priority""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=120_000,
        temperature_hint=0.4,
    ),
    TaskKind.BUG_ANALYSIS: TaskPreset(
        kind=TaskKind.BUG_ANALYSIS,
        name="Bug Detection & Analysis",
        description="Identify potential bugs and edge cases",
        system_prompt="""\
You are a bug detection expert. Analyze code for:
- Null pointer/undefined access
- Race conditions
- Memory leaks
- Off-by-one errors
- Unhandled edge cases
- Resource leaks
- Logic errors
- Type safety issues

Rate each finding by severity: Critical, High, Medium, Low.""",
        user_prompt_template="""\
Analyze this codebase for potential bugs and issues.

**Project Info:**
- Files: {{ file_count }}
- Languages: {{ languages }}
- Total Lines: {{ total_lines }}

**Analysis Focus:**
1. Runtime errors
2. Logic errors
3. Edge cases
4. Resource management
5. Concurrency issues

**Codebase:**
{{ code_content }}

For each bug, provide:
- Severity level
- Location (file:line)
- Description
- Reproduction scenario
- Fix suggestion""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=100_000,
        temperature_hint=0.2,
        include_structure=False,
    ),
    TaskKind.SECURITY_AUDIT: TaskPreset(
        kind=TaskKind.SECURITY_AUDIT,
        name="Security Audit",
        description="Comprehensive security vulnerability assessment",
        system_prompt="""\
You are a security expert. Audit the code for:
- SQL injection vulnerabilities
- XSS vulnerabilities
- Authentication/authorization flaws
- Insecure data storage
- Cryptographic weaknesses
- Input validation issues
- Secrets in code
- Dependency vulnerabilities

Use OWASP Top 10 as a reference framework.""",
        user_prompt_template="""\
Perform a security audit of this codebase.

**Project Details:**
- Files: {{ file_count }}
- Languages: {{ languages }}

**Security Checklist:**
1. Authentication & Authorization
2. Input validation
3. Data encryption
4. Secret management
5. Dependencies security
6. API security
7. Error handling

**Code to Audit:**
{{ code_content }}

For each security issue:
- Severity: Critical/High/Medium/Low
- CWE ID (if applicable)
- Location
- Vulnerability description
- Exploit scenario
- Remediation steps""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=120_000,
        temperature_hint=0.2,
    ),
    TaskKind.TEST_GENERATION: TaskPreset(
        kind=TaskKind.TEST_GENERATION,
        name="Test Suite Generation",
        description="Generate comprehensive test cases",
        system_prompt="""\
You are a test automation expert. Generate:
- Unit tests for all functions
- Integration tests for modules
- Edge case tests
- Property-based tests where applicable
- Mock/stub suggestions
- Test data examples

Use the project's testing framework and conventions.""",
        user_prompt_template="""\
Generate comprehensive tests for this codebase.

**Project Stats:**
- Files: {{ file_count }}
- Languages: {{ languages }}

**Test Requirements:**
1. Unit tests with >80% coverage
2. Integration tests
3. Edge case coverage
4. Mock/stub strategies
5. Test documentation

**Code:**
{{ code_content }}

Generate tests with:
- Clear test names
- Arrange-Act-Assert pattern
- Edge cases
- Error scenarios
- Documentation""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=150_000,
        temperature_hint=0.4,
    ),
    TaskKind.ARCHITECTURE_REVIEW: TaskPreset(
        kind=TaskKind.ARCHITECTURE_REVIEW,
        name="Architecture Review",
        description="Evaluate system architecture and design",
        system_prompt="""\
You are a software architect. Review:
- System architecture
- Component relationships
- Design patterns usage
- Separation of concerns
- Scalability considerations
- Maintainability
- Technology choices

Provide architectural diagrams and improvement suggestions.""",
        user_prompt_template="""\
Review the architecture of this system.

**Project Overview:**
- Files: {{ file_count }}
- Languages: {{ languages }}
- Structure:
{{ directory_structure }}

**Architecture Review Points:**
1. Overall architecture pattern
2. Module organization
3. Dependencies and coupling
4. Scalability design
5. Error handling strategy
6. Data flow

**Codebase:**
{{ code_content }}

Provide:
1. Current architecture assessment
2. Strengths and weaknesses
3. Recommended improvements
4. Migration strategy (if needed)
5. Architecture diagram (mermaid)""",
        suggested_model="claude-opus-4",
        max_tokens_hint=100_000,
        temperature_hint=0.4,
    ),
    TaskKind.PERFORMANCE_ANALYSIS: TaskPreset(
        kind=TaskKind.PERFORMANCE_ANALYSIS,
        name="Performance Analysis",
        description="Identify performance bottlenecks and optimization opportunities",
        system_prompt="""\
You are a performance optimization expert. Analyze:
- Algorithm complexity (Big O)
- Memory usage patterns
- I/O operations
- Database query optimization
- Caching opportunities
- Parallelization potential
- Resource management

Prioritize optimizations by impact.""",
        user_prompt_template="""\
Analyze performance characteristics of this codebase.

**Project Info:**
- Files: {{ file_count }}
- Languages: {{ languages }}
- Total Lines: {{ total_lines }}

**Performance Focus:**
1. Algorithmic complexity
2. Memory efficiency
3. I/O optimization
4. Caching strategies
5. Concurrency utilization

**Code:**
{{ code_content }}

For each optimization:
- Current bottleneck
- Impact level (High/Medium/Low)
- Optimization strategy
- Expected improvement
- Implementation complexity""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=120_000,
        temperature_hint=0.3,
        include_structure=False,
    ),
    TaskKind.MIGRATION_PLAN: TaskPreset(
        kind=TaskKind.MIGRATION_PLAN,
        name="Migration Planning",
        description="Create a plan for technology migration or upgrade",
        system_prompt="""\
You are a migration specialist. Create detailed migration plans covering:
- Current state analysis
- Target state definition
- Step-by-step migration path
- Risk assessment
- Rollback strategy
- Testing approach
- Timeline estimation

Consider backward compatibility and minimal disruption.""",
        user_prompt_template="""\
Create a migration plan for this project.

**Current Project:**
- Files: {{ file_count }}
- Languages: {{ languages }}
- Dependencies: {{ dependencies }}

**Migration Goal:** [User to specify: e.g., "Migrate from Python 2 to Python 3"]

**Code:**
{{ code_content }}

Provide:
1. Current state analysis
2. Migration challenges
3. Step-by-step plan
4. Code changes needed
5. Testing strategy
6. Risk mitigation
7. Timeline estimate""",
        suggested_model="claude-opus-4",
        max_tokens_hint=100_000,
        temperature_hint=0.5,
    ),
    TaskKind.API_DESIGN: TaskPreset(
        kind=TaskKind.API_DESIGN,
        name="API Design Review",
        description="Review and improve API design",
        system_prompt="""\
You are an API design expert. Review APIs for:
- RESTful principles
- Consistency
- Documentation
- Error handling
- Versioning strategy
- Security
- Performance
- Developer experience

Suggest improvements following industry best practices.""",
        user_prompt_template="""\
Review the API design in this codebase.

**Project Info:**
- Files: {{ file_count }}
- Languages: {{ languages }}

**API Review Areas:**
1. Endpoint design
2. Request/response formats
3. Error handling
4. Authentication/authorization
5. Rate limiting
6. Documentation
7. Versioning

**Code:**
{{ code_content }}

Provide:
- API inventory
- Design issues
- Improvement suggestions
- OpenAPI/Swagger spec (if applicable)
- Best practice recommendations""",
        suggested_model="claude-sonnet-4",
        max_tokens_hint=100_000,
        temperature_hint=0.4,
    ),
}


def get_task_preset(kind: TaskKind | str) -> TaskPreset:
    try:
        return TASK_PRESETS[TaskKind(kind)]
    except ValueError as exc:
        raise ValueError(f"Unknown task preset: {kind}") from exc
