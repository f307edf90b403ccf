from typing import Iterable, List

PREDEFINED_SKILLS = [
    # Programming languages
    "JavaScript", "TypeScript", "Python", "Java", "C++", "C#", "Go", "Rust", "PHP", "Ruby", "Swift",
    "Kotlin", "Dart", "Scala", "R", "MATLAB", "SQL",
    # Frontend
    "React", "Vue.js", "Angular", "Svelte", "Next.js", "Nuxt.js", "HTML", "CSS", "Sass", "Less",
    "Tailwind CSS", "Bootstrap", "Material-UI", "Chakra UI",
    # Backend
    "Node.js", "Express.js", "Django", "Flask", "FastAPI", "Spring Boot", "ASP.NET", "Laravel",
    "Ruby on Rails", "GraphQL", "REST APIs", "Microservices",
    # Databases
    "MongoDB", "PostgreSQL", "MySQL", "SQLite", "Redis", "Elasticsearch", "Firebase", "Supabase",
    "DynamoDB", "Cassandra",
    # Cloud & DevOps
    "AWS", "Google Cloud", "Azure", "Docker", "Kubernetes", "Jenkins", "GitHub Actions", "GitLab CI",
    "Terraform", "Ansible", "Linux", "Nginx",
    # Mobile
    "React Native", "Flutter", "iOS Development", "Android Development", "Xamarin", "Ionic", "Cordova",
    # Data & AI
    "Machine Learning", "Deep Learning", "Data Analysis", "Data Visualization", "TensorFlow", "PyTorch",
    "Pandas", "NumPy", "Scikit-learn", "Jupyter", "Tableau", "Power BI",
    # Design
    "UI/UX Design", "Figma", "Adobe Photoshop", "Adobe Illustrator", "Sketch", "InVision", "Prototyping",
    "User Research", "Wireframing", "Design Systems",
    # Games
    "Unity", "Unreal Engine", "Godot", "Game Design", "3D Modeling", "Blender", "Maya", "C# for Games", "Lua",
    # Web3
    "Blockchain", "Solidity", "Web3.js", "Ethereum", "Smart Contracts", "DeFi", "NFTs", "Cryptocurrency",
    # Testing
    "Unit Testing", "Integration Testing", "Jest", "Cypress", "Selenium", "Test-Driven Development",
    "Quality Assurance",
    # Project management
    "Agile", "Scrum", "Kanban", "Project Management", "Product Management", "Leadership", "Team Management",
    # Marketing & business
    "Digital Marketing", "SEO", "Content Marketing", "Social Media Marketing", "Email Marketing", "Analytics",
    "Business Strategy", "Sales",
    # Other
    "Git", "GitHub", "Version Control", "API Development", "Cybersecurity", "Network Administration",
    "System Administration", "Technical Writing",
]

SEARCH_LIMIT = 10
SUGGESTION_LIMIT = 20


def search_skills(query: str) -> List[str]:
    """Case-insensitive substring search over the catalogue."""
    q = (query or "").strip().lower()
    if not q:
        return []
    return [s for s in PREDEFINED_SKILLS if q in s.lower()][:SEARCH_LIMIT]


def skill_suggestions(current: Iterable[str]) -> List[str]:
    chosen = set(current)
    return [s for s in PREDEFINED_SKILLS if s not in chosen][:SUGGESTION_LIMIT]


def clean_skills(labels: Iterable[str], limit: int) -> List[str]:
    """Strip blanks and duplicates, keep first occurrence order, cap at limit."""
    seen = []
    for label in labels:
        label = label.strip()
        if label and label not in seen:
            seen.append(label)
    return seen[:limit]
